"""Logging setup and eAPI timing for eoscraft.

Two log files live side by side: ``eoscraft.log`` for the ``eoscraft`` and
``mcp_arista_switch`` loggers, and ``eoscraft-perf.log`` for one line per
timed operation (``operation | device | ms | OK/FAIL``).

Environment Variables:
    EOSCRAFT_LOG_LEVEL: console level (default: INFO)
    EOSCRAFT_LOG_FILE: main log path (default: ~/.eoscraft/eoscraft.log)
    EOSCRAFT_LOG_MAX_SIZE: rotation size in MB (default: 10)
    EOSCRAFT_LOG_BACKUPS: rotated files to keep (default: 5)
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

perf_logger = logging.getLogger("eoscraft.perf")
main_logger = logging.getLogger("eoscraft")

LOGGER_NAMES = ("eoscraft", "mcp_arista_switch")
MAIN_FORMAT = "%(asctime)s.%(msecs)03d | %(name)-30s | %(levelname)-7s | %(message)s"
PERF_FORMAT = "%(asctime)s.%(msecs)03d | PERF | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def get_log_level() -> int:
    level_str = os.environ.get("EOSCRAFT_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file(log_dir: Optional[str] = None) -> Path:
    """EOSCRAFT_LOG_FILE wins, then ``log_dir``, then ~/.eoscraft."""
    env_path = os.environ.get("EOSCRAFT_LOG_FILE")
    if env_path:
        return Path(env_path)
    base = Path(log_dir).expanduser() if log_dir else Path.home() / ".eoscraft"
    return base / "eoscraft.log"


def _rotating_handler(path: Path, fmt: str) -> RotatingFileHandler:
    max_size_mb = int(os.environ.get("EOSCRAFT_LOG_MAX_SIZE", "10"))
    handler = RotatingFileHandler(
        path,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=int(os.environ.get("EOSCRAFT_LOG_BACKUPS", "5")),
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_dir: Optional[str] = None) -> None:
    """Attach console, file and perf handlers once per process."""
    global _configured
    if _configured:
        return

    log_level = get_log_level()
    log_file = get_log_file(log_dir)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # stdout carries the MCP stream, StreamHandler defaults to stderr
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(MAIN_FORMAT, datefmt=DATE_FORMAT))
    file_handler = _rotating_handler(log_file, MAIN_FORMAT)

    for name in LOGGER_NAMES:
        target = logging.getLogger(name)
        target.setLevel(logging.DEBUG)
        target.addHandler(console_handler)
        target.addHandler(file_handler)

    perf_log_file = log_file.parent / "eoscraft-perf.log"
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(_rotating_handler(perf_log_file, PERF_FORMAT))
    perf_logger.propagate = False

    _configured = True
    main_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    perf_logger.info(f"Performance logging to: {perf_log_file}")


def _perf_line(operation: str, dev_id: Optional[str], elapsed: float, status: str, extra: dict) -> str:
    line = f"{operation:20s} | {dev_id or 'N/A':15s} | {elapsed:8.2f}ms | {status}"
    if extra:
        line += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())
    return line


@asynccontextmanager
async def timed_section(operation: str, device_id: Optional[str] = None, **extra):
    """Time the enclosed block; failures are logged at WARNING and re-raised.

    Usage:
        async with timed_section("tool:apply_config", device_id="3", reload=False):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        global_stats.record(operation, elapsed)
        perf_logger.warning(_perf_line(operation, device_id, elapsed, f"FAIL: {e}", extra))
        raise
    elapsed = (time.perf_counter() - start) * 1000
    global_stats.record(operation, elapsed)
    perf_logger.info(_perf_line(operation, device_id, elapsed, "OK", extra))


def timed(operation: str, device_id: Optional[str] = None):
    """Decorator form of :func:`timed_section` for coroutine methods.

    The device id defaults to ``self.device_id`` when the first argument
    has one.
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"timed() expects a coroutine function, got {func!r}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            dev_id = device_id
            if dev_id is None and args:
                dev_id = getattr(args[0], "device_id", None)
            async with timed_section(operation, device_id=dev_id):
                return await func(*args, **kwargs)

        return wrapper

    return decorator


class PerfStats:
    """Per-operation timing samples in milliseconds."""

    def __init__(self):
        self._data: dict[str, list[float]] = {}

    def record(self, operation: str, duration_ms: float) -> None:
        self._data.setdefault(operation, []).append(duration_ms)

    def count(self, operation: str) -> int:
        return len(self._data.get(operation, []))

    def summary(self) -> str:
        lines = ["Performance Summary", "=" * 60]
        for op, times in sorted(self._data.items()):
            if not times:
                continue
            avg = sum(times) / len(times)
            lines.append(
                f"{op:20s} | count={len(times):4d} | "
                f"avg={avg:8.2f}ms | min={min(times):8.2f}ms | max={max(times):8.2f}ms"
            )
        return "\n".join(lines)

    def clear(self) -> None:
        self._data.clear()


global_stats = PerfStats()
