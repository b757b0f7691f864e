"""Recovery sweeper module.

Drives one pass of scan, claim, reprocess and aggregate, and the periodic
loop that repeats passes on a timer.
"""

import logging
import threading
import time
from typing import Any, Optional

from aggregator import aggregate
from claimer import IdleClaimCoordinator
from config import Config
from errors import PassError
from models import ClaimBatch, ProcessResult
from reprocessor import ConcurrentReprocessor
from scanner import PendingScanner

logger = logging.getLogger(__name__)


class RecoverySweeper:
    """Recovers delivered-but-unacknowledged entries of one consumer group.

    Holds no state between passes beyond Redis itself. Passes issued
    through the same sweeper are serialized; separate processes may
    overlap safely since claims are atomic per entry.
    """

    def __init__(
        self,
        config: Config,
        gateway: Any,
        scanner: Optional[PendingScanner] = None,
        claimer: Optional[IdleClaimCoordinator] = None,
        reprocessor: Optional[ConcurrentReprocessor] = None,
    ) -> None:
        """Initialize the sweeper.

        Args:
            config: Configuration object
            gateway: StreamGateway shared by all components
            scanner: Override for the pending scanner
            claimer: Override for the claim coordinator
            reprocessor: Override for the reprocessor
        """
        self._config = config
        self._gateway = gateway
        self._scanner = scanner or PendingScanner(gateway)
        self._claimer = claimer or IdleClaimCoordinator(gateway)
        self._reprocessor = reprocessor or ConcurrentReprocessor(
            gateway,
            key_prefix=config.index.key_prefix,
            key_field=config.index.key_field,
            max_workers=config.sweeper.max_workers,
            deadline_seconds=config.sweeper.pass_deadline_seconds,
        )
        self._pass_lock = threading.Lock()
        self.last_result: Optional[ProcessResult] = None

    @property
    def gateway(self) -> Any:
        return self._gateway

    def run_pass(self) -> ProcessResult:
        """Run exactly one recovery pass.

        Returns:
            ProcessResult for the pass

        Raises:
            PassError: If the scan or the claim fails. No partial result
                is produced in that case.
        """
        stream = self._config.stream

        with self._pass_lock:
            pending, records = self._scanner.scan(stream.name, stream.consumer_group)
            if pending == 0:
                result = aggregate(0, 0, 0)
                self.last_result = result
                return result

            claimed = self._claimer.claim(
                stream.name,
                stream.consumer_group,
                stream.recovery_consumer,
                stream.min_idle_seconds,
                ClaimBatch.from_pending(records),
            )
            if not claimed:
                result = aggregate(pending, 0, 0)
                self.last_result = result
                return result

            processed, elapsed = self._reprocessor.reprocess(
                stream.name, stream.consumer_group, claimed
            )
            result = aggregate(pending, len(claimed), processed, elapsed)
            self.last_result = result

        logger.info(
            f"Pass complete: pending={result.pending}, claimed={result.claimed}, "
            f"processed={result.processed}, elapsed: {result.elapsed_seconds:.2f}s"
        )
        return result

    def run(self, shutdown_event: Any) -> None:
        """Run passes at the configured interval until shutdown.

        A PassError is logged and the loop continues with the next interval;
        the pending-entry list carries unrecovered work forward. Any other
        exception is a defect and propagates to the caller.

        Args:
            shutdown_event: Threading event to signal shutdown
        """
        while not shutdown_event.is_set():
            cycle_start = time.time()
            try:
                self.run_pass()
            except PassError as e:
                logger.error(f"Sweeper pass failed: {e}")

            elapsed = time.time() - cycle_start
            sleep_time = max(0, self._config.sweeper.interval_seconds - elapsed)
            if shutdown_event.wait(timeout=sleep_time):
                break
