"""
Engine configuration: debug and timing flags, logger, error-transform hook.

The configuration is an immutable ``LazyConfig`` value. A process default is
kept here for convenience; every engine entry point also accepts an explicit
config, in which case the process default is not consulted.

    configure(debug=True, timing=True)
    configure(on_error=lambda ctx: SUPPRESS if isinstance(ctx.error, KeyError) else None)
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

DEFAULT_LOGGER_NAME = "lazyfields"


class _Suppress:
    """Sentinel returned by an error hook to turn a failure into ``None``."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SUPPRESS"

    def __reduce__(self):
        return (_Suppress, ())


SUPPRESS = _Suppress()


@dataclass(frozen=True)
class ErrorContext:
    """Context handed to the error hook for a failing field read."""
    class_name: str
    field_name: str
    method_name: str
    error: BaseException


ErrorHook = Callable[[ErrorContext], Any]


@dataclass(frozen=True)
class LazyConfig:
    """Immutable engine configuration snapshot."""
    debug: bool = False
    timing: bool = False
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(DEFAULT_LOGGER_NAME))
    # Return an exception to raise instead, SUPPRESS to resolve to None,
    # or None to re-raise the original failure.
    on_error: Optional[ErrorHook] = None


_current_config: LazyConfig = LazyConfig()


def configure(**options: Any) -> LazyConfig:
    """
    Update the process default configuration.

    Only the given options change; the others keep their current value.

    Args:
        **options: Any of ``debug``, ``timing``, ``logger``, ``on_error``

    Returns:
        The new configuration snapshot

    Raises:
        TypeError: If an unknown option is passed
    """
    global _current_config
    known = {f.name for f in dataclasses.fields(LazyConfig)}
    unknown = set(options) - known
    if unknown:
        raise TypeError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
    _current_config = dataclasses.replace(_current_config, **options)
    return _current_config


def get_config() -> LazyConfig:
    """Return the current process default configuration."""
    return _current_config


def reset_config() -> None:
    """Restore the default configuration (useful for testing)."""
    global _current_config
    _current_config = LazyConfig()


def _format_context(context: dict) -> str:
    return " ".join(f"{key}={value}" for key, value in context.items())


def log(level: int, message: str, config: Optional[LazyConfig] = None, **context: Any) -> None:
    """Log through the configured logger, appending ``key=value`` context."""
    config = config or _current_config
    if context:
        config.logger.log(level, "%s %s", message, _format_context(context))
    else:
        config.logger.log(level, "%s", message)


def is_debug_enabled(class_debug: Optional[bool] = None, config: Optional[LazyConfig] = None) -> bool:
    """Debug logging is on when the class enables it or the global flag is set."""
    return bool(class_debug) or (config or _current_config).debug


def handle_error(
    class_name: str,
    field_name: str,
    method_name: str,
    error: BaseException,
    config: Optional[LazyConfig] = None,
) -> Any:
    """
    Route a computation failure through the error hook.

    Returns:
        The exception to raise, or ``SUPPRESS`` if the field should resolve to None
    """
    config = config or _current_config
    log(
        logging.ERROR,
        f'Error in {class_name}.{method_name}() for field "{field_name}"',
        config,
        error=repr(error),
    )

    if config.on_error is None:
        return error

    outcome = config.on_error(ErrorContext(class_name, field_name, method_name, error))
    if outcome is SUPPRESS:
        return SUPPRESS
    if outcome is None:
        return error
    if isinstance(outcome, BaseException):
        return outcome
    raise TypeError(
        f"Error hook must return an exception, SUPPRESS or None, got {type(outcome).__name__}"
    )
