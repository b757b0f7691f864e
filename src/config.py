"""Configuration loading and validation module.

This module handles YAML configuration loading (or the environment-variable
form used by the function-host deployment) and provides a typed Config
dataclass consumed by all other modules.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple
import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or missing required fields."""
    pass


# Environment variable names used by the function-host deployment
REDIS_HOST_ENV = "REDIS_HOST"
REDIS_PASSWORD_ENV = "REDIS_PASSWORD"
REDIS_SSL_ENV = "REDIS_SSL"
STREAM_NAME_ENV = "STREAM_NAME"
CONSUMER_GROUP_NAME_ENV = "STREAM_CONSUMER_GROUP_NAME"
RECOVERY_CONSUMER_NAME_ENV = "MONITORING_CONSUMER_NAME"
MIN_IDLE_TIME_ENV = "MIN_IDLE_TIME_SEC"
SERVER_PORT_ENV = "FUNCTIONS_CUSTOMHANDLER_PORT"

DEFAULT_REDIS_PORT = 6379
DEFAULT_SERVER_PORT = 8080


@dataclass
class RedisConfig:
    """Redis connection configuration."""
    host: str
    port: int = DEFAULT_REDIS_PORT
    password: Optional[str] = None
    ssl: bool = False
    socket_timeout_seconds: int = 5
    socket_connect_timeout_seconds: int = 5


@dataclass
class StreamConfig:
    """Stream and consumer group the sweeper recovers entries for."""
    name: str
    consumer_group: str
    recovery_consumer: str
    min_idle_seconds: int


@dataclass
class IndexConfig:
    """Side-index key derivation."""
    key_prefix: str = "tweet:"
    key_field: str = "id"


@dataclass
class SweeperConfig:
    """Pass execution limits."""
    max_workers: int = 32
    pass_deadline_seconds: int = 60
    interval_seconds: int = 60


@dataclass
class ServerConfig:
    """HTTP trigger configuration."""
    host: str = "0.0.0.0"
    port: int = DEFAULT_SERVER_PORT


@dataclass
class Config:
    """Root configuration dataclass."""
    redis: RedisConfig
    stream: StreamConfig
    index: IndexConfig = field(default_factory=IndexConfig)
    sweeper: SweeperConfig = field(default_factory=SweeperConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _get_nested(data: dict, path: str, required: bool = True, default: Any = None) -> Any:
    """Get a nested value from a dictionary using dot notation.

    Args:
        data: The dictionary to search
        path: Dot-separated path to the value (e.g., "stream.name")
        required: If True, raises ConfigError when value is missing
        default: Default value if not required and missing

    Returns:
        The value at the path, or default if not required and missing

    Raises:
        ConfigError: If required value is missing
    """
    keys = path.split(".")
    current = data

    for key in keys:
        if not isinstance(current, dict):
            if required:
                raise ConfigError(f"Configuration path '{path}' is not a valid nested structure")
            return default
        if key not in current:
            if required:
                raise ConfigError(f"Missing required configuration field: {path}")
            return default
        current = current[key]

    return current


def _validate_type(value: Any, expected_type: type, field_name: str) -> None:
    """Validate that a value is of the expected type.

    Args:
        value: The value to validate
        expected_type: The expected type
        field_name: Name of the field for error messages

    Raises:
        ConfigError: If value is not of the expected type
    """
    if expected_type is bool:
        if not isinstance(value, bool):
            raise ConfigError(
                f"Field '{field_name}' must be a boolean, got {type(value).__name__}"
            )
    elif expected_type is int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigError(
                f"Field '{field_name}' must be an integer, got {type(value).__name__}"
            )
    elif expected_type is str:
        if not isinstance(value, str):
            raise ConfigError(
                f"Field '{field_name}' must be a string, got {type(value).__name__}"
            )
    else:
        if not isinstance(value, expected_type):
            raise ConfigError(
                f"Field '{field_name}' must be of type {expected_type.__name__}, got {type(value).__name__}"
            )


def _require_non_empty(value: str, field_name: str) -> None:
    if not value.strip():
        raise ConfigError(f"Field '{field_name}' must not be empty")


def _split_host_port(address: str, default_port: int) -> Tuple[str, int]:
    """Split "host:port" into its parts, falling back to default_port.

    IPv6 literals carry a port only in the bracketed form "[::1]:6379". A
    bare literal such as "::1" is taken as a host without a port.

    Raises:
        ConfigError: If the port component is not an integer or a bracket
            is unbalanced
    """
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or not host:
            raise ConfigError(f"Invalid Redis address: {address!r}")
        if not rest:
            return host, default_port
        if not rest.startswith(":"):
            raise ConfigError(f"Invalid Redis address: {address!r}")
        port_str = rest[1:]
    elif address.count(":") > 1:
        return address, default_port
    else:
        host, sep, port_str = address.rpartition(":")
        if not sep:
            return address, default_port
    try:
        return host, int(port_str)
    except ValueError:
        raise ConfigError(f"Invalid port in Redis address: {address!r}")


def _validate_ranges(cfg: Config) -> None:
    """Range validation shared by the YAML and environment loaders."""
    if not 0 < cfg.redis.port < 65536:
        raise ConfigError("redis.port must be between 1 and 65535")
    if cfg.redis.socket_timeout_seconds <= 0:
        raise ConfigError("redis.socket_timeout_seconds must be > 0")
    if cfg.redis.socket_connect_timeout_seconds <= 0:
        raise ConfigError("redis.socket_connect_timeout_seconds must be > 0")
    if cfg.stream.min_idle_seconds < 0:
        raise ConfigError("stream.min_idle_seconds must be >= 0")
    if cfg.sweeper.max_workers < 1:
        raise ConfigError("sweeper.max_workers must be >= 1")
    if cfg.sweeper.pass_deadline_seconds < 0:
        raise ConfigError("sweeper.pass_deadline_seconds must be >= 0")
    if cfg.sweeper.interval_seconds <= 0:
        raise ConfigError("sweeper.interval_seconds must be > 0")
    if not 0 < cfg.server.port < 65536:
        raise ConfigError("server.port must be between 1 and 65535")


def load_config(path: str) -> Config:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file

    Returns:
        Config: Validated configuration object

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}")

    if data is None:
        raise ConfigError("Configuration file is empty")

    if not isinstance(data, dict):
        raise ConfigError("Configuration file must contain a YAML dictionary")

    # Redis configuration
    redis_data = _get_nested(data, "redis")
    host = _get_nested(redis_data, "host")
    _validate_type(host, str, "redis.host")
    _require_non_empty(host, "redis.host")

    port = _get_nested(redis_data, "port", required=False, default=None)
    if port is None:
        host, port = _split_host_port(host, DEFAULT_REDIS_PORT)
    elif host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    _validate_type(port, int, "redis.port")

    password = _get_nested(redis_data, "password", required=False, default=None)
    if password is not None:
        _validate_type(password, str, "redis.password")

    use_ssl = _get_nested(redis_data, "ssl", required=False, default=False)
    _validate_type(use_ssl, bool, "redis.ssl")

    socket_timeout = _get_nested(
        redis_data, "socket_timeout_seconds", required=False, default=5
    )
    _validate_type(socket_timeout, int, "redis.socket_timeout_seconds")

    connect_timeout = _get_nested(
        redis_data, "socket_connect_timeout_seconds", required=False, default=5
    )
    _validate_type(connect_timeout, int, "redis.socket_connect_timeout_seconds")

    redis_cfg = RedisConfig(
        host=host,
        port=port,
        password=password,
        ssl=use_ssl,
        socket_timeout_seconds=socket_timeout,
        socket_connect_timeout_seconds=connect_timeout,
    )

    # Stream configuration
    stream_data = _get_nested(data, "stream")
    stream_values = {}
    for name in ("name", "consumer_group", "recovery_consumer"):
        value = _get_nested(stream_data, name)
        _validate_type(value, str, f"stream.{name}")
        _require_non_empty(value, f"stream.{name}")
        stream_values[name] = value

    min_idle_seconds = _get_nested(stream_data, "min_idle_seconds")
    _validate_type(min_idle_seconds, int, "stream.min_idle_seconds")

    stream_cfg = StreamConfig(min_idle_seconds=min_idle_seconds, **stream_values)

    # Index configuration
    index_data = _get_nested(data, "index", required=False, default={})
    key_prefix = _get_nested(index_data, "key_prefix", required=False, default="tweet:")
    _validate_type(key_prefix, str, "index.key_prefix")
    key_field = _get_nested(index_data, "key_field", required=False, default="id")
    _validate_type(key_field, str, "index.key_field")
    _require_non_empty(key_field, "index.key_field")

    index_cfg = IndexConfig(key_prefix=key_prefix, key_field=key_field)

    # Sweeper configuration
    sweeper_data = _get_nested(data, "sweeper", required=False, default={})
    sweeper_values = {}
    for name, default in (
        ("max_workers", 32),
        ("pass_deadline_seconds", 60),
        ("interval_seconds", 60),
    ):
        value = _get_nested(sweeper_data, name, required=False, default=default)
        _validate_type(value, int, f"sweeper.{name}")
        sweeper_values[name] = value

    sweeper_cfg = SweeperConfig(**sweeper_values)

    # Server configuration
    server_data = _get_nested(data, "server", required=False, default={})
    server_host = _get_nested(server_data, "host", required=False, default="0.0.0.0")
    _validate_type(server_host, str, "server.host")
    server_port = _get_nested(
        server_data, "port", required=False, default=DEFAULT_SERVER_PORT
    )
    _validate_type(server_port, int, "server.port")

    server_cfg = ServerConfig(host=server_host, port=server_port)

    cfg = Config(
        redis=redis_cfg,
        stream=stream_cfg,
        index=index_cfg,
        sweeper=sweeper_cfg,
        server=server_cfg,
    )
    _validate_ranges(cfg)
    return cfg


def _get_env_or_fail(env: Mapping[str, str], key: str) -> str:
    value = env.get(key, "")
    if value == "":
        raise ConfigError(f"Environment variable {key} not set")
    return value


def _parse_env_int(value: str, key: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Environment variable {key} must be an integer, got {value!r}")


def _parse_env_bool(value: str, key: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"Environment variable {key} must be a boolean, got {value!r}")


def load_config_from_env(env: Optional[Mapping[str, str]] = None) -> Config:
    """Build configuration from environment variables.

    This is the form used when the sweeper runs as a function-host custom
    handler. REDIS_HOST may carry a port ("host:port"). TLS is on unless
    REDIS_SSL says otherwise.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        Config: Validated configuration object

    Raises:
        ConfigError: If a required variable is missing or malformed
    """
    if env is None:
        env = os.environ

    host, port = _split_host_port(
        _get_env_or_fail(env, REDIS_HOST_ENV), DEFAULT_REDIS_PORT
    )
    password = _get_env_or_fail(env, REDIS_PASSWORD_ENV)

    ssl_value = env.get(REDIS_SSL_ENV)
    use_ssl = True if not ssl_value else _parse_env_bool(ssl_value, REDIS_SSL_ENV)

    min_idle_seconds = _parse_env_int(
        _get_env_or_fail(env, MIN_IDLE_TIME_ENV), MIN_IDLE_TIME_ENV
    )

    server_port_value = env.get(SERVER_PORT_ENV)
    server_port = (
        _parse_env_int(server_port_value, SERVER_PORT_ENV)
        if server_port_value
        else DEFAULT_SERVER_PORT
    )

    cfg = Config(
        redis=RedisConfig(host=host, port=port, password=password, ssl=use_ssl),
        stream=StreamConfig(
            name=_get_env_or_fail(env, STREAM_NAME_ENV),
            consumer_group=_get_env_or_fail(env, CONSUMER_GROUP_NAME_ENV),
            recovery_consumer=_get_env_or_fail(env, RECOVERY_CONSUMER_NAME_ENV),
            min_idle_seconds=min_idle_seconds,
        ),
        server=ServerConfig(port=server_port),
    )
    _validate_ranges(cfg)
    return cfg
