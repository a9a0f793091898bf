"""
Runtime configuration.

The process-wide `RuntimeConfig` is read once from environment variables
prefixed with ``LAZYGRAD_`` and can be overridden programmatically with
`set_config`.

Environment variables
---------------------
LAZYGRAD_DEFAULT_DEVICE : str
    Default placement for new leaves ("cpu" or "gpu:<index>"). Default "cpu".
LAZYGRAD_BUFFER_REUSE : bool
    Recycle released buffers through the buffer pool. Default "1".
LAZYGRAD_POOL_LIMIT_BYTES : int
    Upper bound on bytes held by the buffer pool. Default 256 MiB.
LAZYGRAD_USE_BLAS : bool
    Route eligible matmuls to the vendor BLAS backend. Default "1".
LAZYGRAD_RETAIN_GRAPH : bool
    Keep pending records after materialization. Default "1".
LAZYGRAD_LOG_LEVEL : str
    Level of the ``lazygrad`` logger. Default "WARNING".
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
import logging
import os
import threading

_ENV_PREFIX = "LAZYGRAD_"
_FALSY = ("0", "false", "False", "no", "off", "")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(_ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip() not in _FALSY


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(_ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Process-wide runtime settings.

    Attributes
    ----------
    default_device : str
        Placement used when a factory is called without `device`.
    buffer_reuse : bool
        Whether released buffers are recycled for later kernel outputs.
    pool_limit_bytes : int
        Maximum number of bytes the buffer pool may hold.
    use_blas : bool
        Whether 2-D float matmuls on CPU use the vendor BLAS kernel.
    retain_graph : bool
        Default for `materialize(..., retain_graph=...)`.
    log_level : str
        Level applied to the ``lazygrad`` logger.
    """

    default_device: str = "cpu"
    buffer_reuse: bool = True
    pool_limit_bytes: int = 256 * 1024 * 1024
    use_blas: bool = True
    retain_graph: bool = True
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        from .domain.device._device import Device

        Device.parse(self.default_device)
        if self.pool_limit_bytes < 0:
            raise ValueError(
                f"pool_limit_bytes must be >= 0, got {self.pool_limit_bytes}"
            )
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {_LOG_LEVELS}, got {self.log_level!r}"
            )

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        """Build a configuration from ``LAZYGRAD_*`` environment variables."""
        return cls(
            default_device=os.environ.get(_ENV_PREFIX + "DEFAULT_DEVICE", "cpu"),
            buffer_reuse=_env_bool("BUFFER_REUSE", True),
            pool_limit_bytes=_env_int("POOL_LIMIT_BYTES", 256 * 1024 * 1024),
            use_blas=_env_bool("USE_BLAS", True),
            retain_graph=_env_bool("RETAIN_GRAPH", True),
            log_level=os.environ.get(_ENV_PREFIX + "LOG_LEVEL", "WARNING"),
        )


_lock = threading.Lock()
_config: RuntimeConfig | None = None


def _apply_log_level(config: RuntimeConfig) -> None:
    logging.getLogger("lazygrad").setLevel(config.log_level.upper())


def get_config() -> RuntimeConfig:
    """Return the active configuration, reading the environment on first use."""
    global _config
    with _lock:
        if _config is None:
            _config = RuntimeConfig.from_env()
            _apply_log_level(_config)
        return _config


def set_config(**overrides) -> RuntimeConfig:
    """
    Replace fields of the active configuration.

    Parameters
    ----------
    **overrides
        Field names of `RuntimeConfig` and their new values.

    Returns
    -------
    RuntimeConfig
        The new active configuration.

    Raises
    ------
    ValueError
        If a field name is unknown or a value fails validation.
    """
    global _config
    known = {f.name for f in fields(RuntimeConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown config fields: {sorted(unknown)}")
    current = get_config()
    new = replace(current, **overrides)
    with _lock:
        _config = new
    _apply_log_level(new)
    return new
