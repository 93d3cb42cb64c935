"""
Lazy proxies around registered model instances.

A ``LazyProxy`` stands in for a model instance in front of the consumer
(typically a GraphQL executor). Reading ``proxy.entity_id`` calls
``instance.getEntityId()`` at that moment and not before, so only the fields a
query asks for are ever computed.

Read resolution for a field ``f``:

1. dunder names go straight to the instance;
2. ``f`` maps to a method through the explicit mapping, else the naming
   convention;
3. if the instance has that method, it is called (async results come back as
   awaitables; failures go through the error hook);
4. a known optional field without a method reads as ``None``;
5. otherwise the instance's own attribute, or ``AttributeError`` when absent.

Shared computations are memoized per instance. The memoizing wrapper replaces
the method on the instance itself, so a computation calling
``self.getCustomerData()`` hits the same cache as the proxy does.
"""

import asyncio
import functools
import inspect
import logging
import time
from typing import Any, Callable, Iterable, Iterator, List, Optional

from lazyfields.cache import MISSING, SharedComputationCache
from lazyfields.config import SUPPRESS, LazyConfig, get_config, handle_error, is_debug_enabled, log
from lazyfields.errors import LazyFieldsError
from lazyfields.naming import field_to_method_name
from lazyfields.registry import ClassMetadata, LazyOptions, get_class_metadata

logger = logging.getLogger(__name__)

# Instance attribute holding the shared computation cache of a wrapped instance
CACHE_ATTRIBUTE = "_lazyfields_cache"


def _elapsed_ms(start: float) -> str:
    return f"{(time.perf_counter() - start) * 1000:.2f}ms"


def _detached(value: Any) -> Any:
    """
    Give each caller its own view of a shared task.

    Cancelling the view (a cancelled reader, a ``wait_for`` timeout) leaves
    the underlying computation running for every other waiter.
    """
    if isinstance(value, asyncio.Future):
        return asyncio.shield(value)
    return value


def _memoize(
    original: Callable[..., Any],
    method_name: str,
    cache: SharedComputationCache,
    class_name: str,
    options: LazyOptions,
    config: Optional[LazyConfig],
) -> Callable[..., Any]:
    @functools.wraps(original)
    def shared_method(*args, **kwargs):
        cfg = config or get_config()
        debug = is_debug_enabled(options.debug, cfg)

        cached = cache.lookup(method_name)
        if cached is not MISSING:
            if debug:
                state = "pending" if method_name in cache.in_flight else "cache"
                log(logging.DEBUG, f"Shared {state} hit: {class_name}.{method_name}()", cfg)
            return _detached(cached)

        if debug:
            log(logging.DEBUG, f"Shared executing: {class_name}.{method_name}()", cfg)
        start = time.perf_counter() if cfg.timing else 0.0

        result = original(*args, **kwargs)

        if inspect.isawaitable(result):
            task = cache.track(method_name, result)
            if cfg.timing:
                def log_completion(done):
                    if not done.cancelled() and done.exception() is None:
                        log(logging.DEBUG, f"Shared completed: {class_name}.{method_name}()", cfg,
                            duration=_elapsed_ms(start))
                task.add_done_callback(log_completion)
            return _detached(task)

        cache.store(method_name, result)
        if cfg.timing:
            log(logging.DEBUG, f"Shared completed: {class_name}.{method_name}()", cfg, duration=_elapsed_ms(start))
        return result

    shared_method.__lazyfields_shared_wrapper__ = True
    return shared_method


def install_shared_methods(
    instance: Any,
    shared_methods: Iterable[str],
    cache: SharedComputationCache,
    class_name: str,
    options: Optional[LazyOptions] = None,
    config: Optional[LazyConfig] = None,
) -> None:
    """
    Replace each shared method on ``instance`` with a memoizing wrapper.

    The class is left untouched. ``object.__setattr__`` is used so frozen
    dataclasses can be wrapped too.
    """
    options = options or LazyOptions()
    for method_name in shared_methods:
        original = getattr(instance, method_name, None)
        if not callable(original):
            logger.debug(f"Shared method {class_name}.{method_name} not found on instance, skipping")
            continue
        if getattr(original, '__lazyfields_shared_wrapper__', False):
            continue
        object.__setattr__(instance, method_name, _memoize(original, method_name, cache, class_name, options, config))


def is_lazy_proxy(obj: Any) -> bool:
    """True for wrapped instances. Never evaluates a field."""
    return type(obj) is LazyProxy


def unwrap(obj: Any) -> Any:
    """The original instance behind a proxy; other objects are returned as is."""
    if is_lazy_proxy(obj):
        return object.__getattribute__(obj, '_lazy_target')
    return obj


get_original_instance = unwrap


def wrap_nested(value: Any, config: Optional[LazyConfig] = None) -> Any:
    """
    Wrap instances of registered classes found in a computed value.

    Proxies are returned unchanged. Lists and tuples are mapped element-wise;
    named tuples, mappings and every other value pass through.
    """
    if value is None or is_lazy_proxy(value):
        return value
    if isinstance(value, list):
        return [wrap_nested(item, config) for item in value]
    if isinstance(value, tuple) and not hasattr(value, '_fields'):
        return tuple(wrap_nested(item, config) for item in value)

    metadata = get_class_metadata(type(value))
    if metadata is None:
        return value

    cfg = config or get_config()
    if is_debug_enabled(metadata.options.debug, cfg):
        log(logging.DEBUG, f"Wrapping nested object: {type(value).__name__}", cfg)
    return wrap(value, metadata, type(value).__name__, config)


class LazyProxy:
    """
    Field-resolving view of a model instance.

    Besides attribute reads, the proxy offers ``get(name)``, ``name in proxy``,
    ``proxy[name]`` and ``keys()`` for consumers that inspect fields by name.
    Fields whose name collides with one of these methods can only be read
    through ``get``/``[]``.

    ``isinstance(proxy, Model)`` holds for the wrapped model class.
    """

    __slots__ = ('_lazy_target', '_lazy_metadata', '_lazy_class_name', '_lazy_cache', '_lazy_config')

    def __init__(
        self,
        target: Any,
        metadata: ClassMetadata,
        class_name: str,
        cache: SharedComputationCache,
        config: Optional[LazyConfig] = None,
    ):
        object.__setattr__(self, '_lazy_target', target)
        object.__setattr__(self, '_lazy_metadata', metadata)
        object.__setattr__(self, '_lazy_class_name', class_name)
        object.__setattr__(self, '_lazy_cache', cache)
        object.__setattr__(self, '_lazy_config', config)

    @property
    def __class__(self):
        return type(object.__getattribute__(self, '_lazy_target'))

    # Resolution

    def _method_name_for(self, field_name: str) -> str:
        return self._lazy_metadata.field_mappings.get(field_name) or field_to_method_name(field_name)

    def _computation_for(self, field_name: str):
        method_name = self._method_name_for(field_name)
        method = getattr(self._lazy_target, method_name, None)
        return method_name, (method if callable(method) else None)

    def _resolve(self, field_name: str) -> Any:
        method_name, method = self._computation_for(field_name)
        if method is not None:
            return self._invoke(field_name, method_name, method)

        if field_name in self._lazy_metadata.optional_fields:
            return None

        try:
            return getattr(self._lazy_target, field_name)
        except AttributeError:
            return MISSING

    def _invoke(self, field_name: str, method_name: str, method: Callable[[], Any]) -> Any:
        config = self._lazy_config or get_config()
        class_name = self._lazy_class_name
        if is_debug_enabled(self._lazy_metadata.options.debug, config):
            log(logging.DEBUG, f'Executing getter: {class_name}.{method_name}() for field "{field_name}"', config)
        start = time.perf_counter() if config.timing else 0.0

        try:
            result = method()
        except Exception as error:
            outcome = handle_error(class_name, field_name, method_name, error, config)
            if outcome is SUPPRESS:
                return None
            if outcome is error:
                raise
            raise outcome from error

        if inspect.isawaitable(result):
            return self._settle(field_name, method_name, result, start, config)

        if config.timing:
            log(logging.DEBUG, f"Getter completed: {class_name}.{method_name}()", config, duration=_elapsed_ms(start))
        return self._nest(result)

    async def _settle(self, field_name: str, method_name: str, awaitable: Any, start: float, config: LazyConfig) -> Any:
        class_name = self._lazy_class_name
        try:
            value = await awaitable
        except Exception as error:
            outcome = handle_error(class_name, field_name, method_name, error, config)
            if outcome is SUPPRESS:
                return None
            if outcome is error:
                raise
            raise outcome from error

        if config.timing:
            log(logging.DEBUG, f"Getter completed: {class_name}.{method_name}()", config, duration=_elapsed_ms(start))
        return self._nest(value)

    def _nest(self, value: Any) -> Any:
        if not self._lazy_metadata.options.nested_wrapping:
            return value
        return wrap_nested(value, self._lazy_config)

    def _native_keys(self) -> List[str]:
        try:
            native = vars(self._lazy_target)
        except TypeError:
            return []
        shared = self._lazy_metadata.shared_methods
        return [k for k in native if k != CACHE_ATTRIBUTE and k not in shared]

    # Attribute protocol

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup on the proxy fails
        if name.startswith('__') and name.endswith('__'):
            return getattr(self._lazy_target, name)

        value = self._resolve(name)
        if value is MISSING:
            raise AttributeError(f"'{self._lazy_class_name}' object has no field or attribute '{name}'")
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._lazy_target, name, value)

    def __delattr__(self, name: str) -> None:
        delattr(self._lazy_target, name)

    def __dir__(self) -> List[str]:
        return sorted(set(self.keys()) | set(dir(self._lazy_target)))

    # Mapping-style capability interface

    def get(self, name: str, default: Any = None) -> Any:
        """Read a field by name; ``default`` when it is absent."""
        value = self._resolve(name)
        return default if value is MISSING else value

    def __getitem__(self, name: str) -> Any:
        value = self._resolve(name)
        if value is MISSING:
            raise KeyError(name)
        return value

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        if self._computation_for(name)[1] is not None:
            return True
        if name in self._lazy_metadata.optional_fields:
            return True
        return name in self._native_keys()

    def keys(self) -> List[str]:
        """Mapped fields, optional fields, then the instance's own attributes."""
        metadata = self._lazy_metadata
        keys = dict.fromkeys(metadata.field_mappings)
        keys.update(dict.fromkeys(sorted(metadata.optional_fields)))
        keys.update(dict.fromkeys(self._native_keys()))
        return list(keys)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # Structural methods resolve against the instance

    def __repr__(self) -> str:
        return repr(self._lazy_target)

    def __str__(self) -> str:
        return str(self._lazy_target)


def wrap(
    instance: Any,
    metadata: Optional[ClassMetadata] = None,
    class_name: Optional[str] = None,
    config: Optional[LazyConfig] = None,
) -> Any:
    """
    Wrap ``instance`` in a ``LazyProxy``.

    Wrapping a proxy returns it unchanged. Wrapping the same raw instance
    twice reuses its shared computation cache.

    Args:
        instance: Model instance
        metadata: Class metadata; looked up in the registry when omitted
        class_name: Name used in log messages; defaults to the instance's class name
        config: Explicit configuration; the process default is read at access time otherwise

    Raises:
        LazyFieldsError: No metadata given and the class is not registered
    """
    if is_lazy_proxy(instance):
        return instance

    if metadata is None:
        metadata = get_class_metadata(type(instance))
        if metadata is None:
            raise LazyFieldsError(f"{type(instance).__name__} is not registered for lazy field resolution")
    class_name = class_name or type(instance).__name__

    cache = getattr(instance, CACHE_ATTRIBUTE, None)
    if cache is None:
        cache = SharedComputationCache()
        if metadata.shared_methods:
            install_shared_methods(instance, metadata.shared_methods, cache, class_name, metadata.options, config)
            object.__setattr__(instance, CACHE_ATTRIBUTE, cache)

    return LazyProxy(instance, metadata, class_name, cache, config)
