"""Main entry point module.

Handles CLI arguments, configuration, Redis connectivity checks, and the
three run modes: a single pass, the HTTP trigger, or a periodic loop with
signal handling and clean shutdown.
"""

import argparse
import json
import logging
import signal
import sys
import threading
import time
from typing import Any, Optional

import uvicorn

import config as config_module
import redis_client
import server
from errors import PassError
from sweeper import RecoverySweeper


logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def verify_redis_connectivity(
    redis_client_module: Any,
    config: Any,
    timeout_seconds: int = 120,
    retry_interval: int = 10,
) -> Any:
    """Verify Redis connectivity at startup.

    Args:
        redis_client_module: The redis_client module
        config: Configuration object
        timeout_seconds: Maximum time to wait for connectivity
        retry_interval: Seconds between retries

    Returns:
        The verified StreamGateway for reuse

    Raises:
        RuntimeError: If connection cannot be established within timeout
    """
    client = redis_client_module.build_redis_client(config)
    gateway = redis_client_module.StreamGateway(client)
    start_time = time.time()
    last_error = None

    while time.time() - start_time < timeout_seconds:
        try:
            gateway.ping()
            logger.info(
                f"connected to Redis at {config.redis.host}:{config.redis.port}"
            )
            return gateway
        except Exception as e:
            last_error = e
            logger.warning(
                f"Redis connectivity check failed: {e}. Retrying in {retry_interval}s..."
            )
            time.sleep(retry_interval)

    client.close()
    raise RuntimeError(
        f"Failed to connect to Redis after {timeout_seconds}s: {last_error}"
    )


def run_with_restart(
    sweeper: RecoverySweeper,
    shutdown_event: threading.Event,
    restart_delay_seconds: float = 30,
) -> None:
    """Keep the sweeper loop running until shutdown.

    RecoverySweeper.run handles pass failures itself, so anything reaching
    this wrapper is unexpected. It is logged with its traceback and the loop
    is restarted after restart_delay_seconds.
    """
    restarts = 0
    while not shutdown_event.is_set():
        try:
            sweeper.run(shutdown_event)
        except Exception:
            restarts += 1
            logger.exception(
                f"Sweeper loop crashed (restart #{restarts} in "
                f"{restart_delay_seconds}s)"
            )
            if shutdown_event.wait(timeout=restart_delay_seconds):
                break
            logger.info("Restarting sweeper loop...")


def run_once(sweeper: RecoverySweeper) -> int:
    """Run a single pass and print its JSON result to stdout."""
    try:
        result = sweeper.run_pass()
    except PassError as e:
        logger.error(f"Pass failed: {e}")
        print(json.dumps({"error": type(e).__name__, "message": str(e)}))
        return 1
    print(json.dumps(result.to_dict()))
    return 0


def run_loop(sweeper: RecoverySweeper) -> int:
    """Run passes on a timer until SIGINT/SIGTERM."""
    shutdown_event = threading.Event()

    def handle_signal(signum: int, frame: Any) -> None:
        logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    sweeper_thread = threading.Thread(
        target=run_with_restart,
        args=(sweeper, shutdown_event),
        name="sweeper",
        daemon=True,
    )
    sweeper_thread.start()
    logger.info(f"Started {sweeper_thread.name} thread")

    try:
        while not shutdown_event.wait(timeout=30):
            logger.debug(f"Heartbeat: last result={sweeper.last_result}")
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
        shutdown_event.set()

    logger.info("Shutting down sweeper...")
    sweeper_thread.join(timeout=10)
    if sweeper_thread.is_alive():
        logger.warning(f"Thread {sweeper_thread.name} did not stop within timeout")

    logger.info("Shutdown complete")
    return 0


def run_server(sweeper: RecoverySweeper, cfg: config_module.Config) -> int:
    """Serve the HTTP trigger until the server exits."""
    app = server.create_app(sweeper)
    logger.info(f"Server listening on {cfg.server.host}:{cfg.server.port}")
    # log_config=None keeps the logging setup above
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port, log_config=None)
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for clean shutdown)
    """
    parser = argparse.ArgumentParser(description="Redis Stream Recovery Sweeper")
    parser.add_argument(
        "--config",
        help="Path to configuration YAML file (default: read environment variables)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="Run a single pass and exit")
    mode.add_argument("--serve", action="store_true", help="Serve the HTTP trigger (default)")
    mode.add_argument("--loop", action="store_true", help="Run passes on a timer")
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.debug else logging.INFO
    setup_logging(log_level)

    try:
        if args.config:
            cfg = config_module.load_config(args.config)
            logger.info(f"Configuration loaded from {args.config}")
        else:
            cfg = config_module.load_config_from_env()
            logger.info("Configuration loaded from environment")
    except config_module.ConfigError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        gateway = verify_redis_connectivity(redis_client, cfg)
    except RuntimeError as e:
        logger.error(str(e))
        return 1

    sweeper = RecoverySweeper(cfg, gateway)

    try:
        if args.once:
            return run_once(sweeper)
        if args.loop:
            return run_loop(sweeper)
        return run_server(sweeper, cfg)
    finally:
        gateway.close()
        logger.info("closed redis connection")


if __name__ == "__main__":
    sys.exit(main())
