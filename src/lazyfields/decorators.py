"""
Declarative integration: enabling a model class for lazy field resolution.

    @lazy_fields(OrderDTO)
    class Order:
        def __init__(self, order_id, db):
            self.order_id = order_id
            self.db = db

        def getEntityId(self):
            return self.order_id

        async def getCustomerEmail(self):
            customer = await self.getCustomerData()
            return customer["email"]

        @field_name("customer_po")
        def getPurchaseOrderNumber(self):
            return self.db.purchase_order(self.order_id)

        @shared
        async def getCustomerData(self):
            return await self.db.customer_for(self.order_id)

    order = Order(1, db)       # a LazyProxy; nothing computed yet
    await order.customer_email # runs getCustomerEmail -> getCustomerData once

The class is validated against its output type once, when it is decorated.
Every later construction returns a wrapped instance.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple, Type

from lazyfields.config import log
from lazyfields.errors import InvalidSchemaError, ValidationError
from lazyfields.naming import iter_class_callables
from lazyfields.proxy import is_lazy_proxy, wrap
from lazyfields.registry import ClassMetadata, LazyOptions, get_class_metadata, register_class
from lazyfields.schema import SchemaMetadataStorage
from lazyfields.validator import validate_class

logger = logging.getLogger(__name__)

SHARED_MARKER = "__lazyfields_shared__"
FIELD_NAME_MARKER = "__lazyfields_field__"
BASE_NEW_ATTRIBUTE = "_lazyfields_base_new"


def shared(method: Optional[Callable] = None):
    """
    Mark a method as a shared computation, memoized once per instance.

    Usable as ``@shared`` or ``@shared()``.
    """
    def decorator(actual_method: Callable) -> Callable:
        setattr(actual_method, SHARED_MARKER, True)
        return actual_method

    if method is None:
        return decorator
    return decorator(method)


def field_name(name: str) -> Callable[[Callable], Callable]:
    """Map the decorated method to field ``name`` instead of the naming convention."""
    def decorator(method: Callable) -> Callable:
        setattr(method, FIELD_NAME_MARKER, name)
        return method
    return decorator


def collect_declared_metadata(cls: Type) -> Tuple[Dict[str, str], Set[str]]:
    """
    Read ``@field_name`` and ``@shared`` markers along the MRO.

    Returns:
        (field name -> method name, shared method names)
    """
    mappings: Dict[str, str] = {}
    shared_methods: Set[str] = set()
    for method_name, method in iter_class_callables(cls):
        mapped = getattr(method, FIELD_NAME_MARKER, None)
        if mapped:
            mappings.setdefault(mapped, method_name)
        if getattr(method, SHARED_MARKER, False):
            shared_methods.add(method_name)
    return mappings, shared_methods


def _instances_have_dict(cls: Type) -> bool:
    """False when every class in the MRO declares ``__slots__`` without ``__dict__``."""
    for klass in cls.__mro__:
        if klass is object:
            continue
        slots = klass.__dict__.get('__slots__')
        if slots is None:
            return True
        if isinstance(slots, str):
            slots = (slots,)
        if '__dict__' in slots:
            return True
    return False


def _construct(base_new: Callable, klass: Type, args: tuple, kwargs: dict) -> Any:
    if base_new is object.__new__:
        return object.__new__(klass)
    return base_new(klass, *args, **kwargs)


def _install_constructor(cls: Type) -> None:
    """Make ``cls(...)`` return a wrapped instance."""
    if BASE_NEW_ATTRIBUTE in cls.__dict__:
        return

    inherited_new = cls.__new__
    base_new = getattr(inherited_new, BASE_NEW_ATTRIBUTE, inherited_new)

    def __new__(klass, *args, **kwargs):
        instance = _construct(base_new, klass, args, kwargs)
        metadata = get_class_metadata(klass)
        if metadata is None or is_lazy_proxy(instance) or type(instance) is not klass:
            # Unregistered subclass or foreign object: normal construction
            return instance
        # Returning a non-instance skips the automatic __init__ call
        instance.__init__(*args, **kwargs)
        return wrap(instance, metadata, klass.__name__)

    setattr(__new__, BASE_NEW_ATTRIBUTE, base_new)
    cls.__new__ = staticmethod(__new__)
    setattr(cls, BASE_NEW_ATTRIBUTE, staticmethod(base_new))


def enable_lazy_resolution(
    cls: Type,
    schema_class: Type,
    *,
    fields: Optional[Dict[str, str]] = None,
    shared: Optional[Iterable[str]] = None,
    debug: Optional[bool] = None,
    nested_wrapping: bool = False,
    storage: Optional[SchemaMetadataStorage] = None,
) -> Type:
    """
    Register ``cls`` against ``schema_class`` and wrap all future instances.

    Args:
        cls: Model class with computation methods
        schema_class: Output type describing the fields
        fields: Extra explicit mappings, field name -> method name
        shared: Extra shared computation method names
        debug: Enable debug logging for this class even when the global flag is off
        nested_wrapping: Wrap registered instances returned by computations
        storage: Schema storage used for field discovery

    Returns:
        ``cls`` itself

    Raises:
        ValidationError: ``cls`` is not a class, or has shared computations
            but instances without a ``__dict__``
        InvalidSchemaError: ``schema_class`` is not a class
        MissingGetterError: A required field has no computation method
    """
    if not isinstance(cls, type):
        raise ValidationError(f"Only classes can be enabled for lazy resolution, got {cls!r}")
    if not isinstance(schema_class, type):
        raise InvalidSchemaError(f"Schema for {cls.__name__} must be a class, got {schema_class!r}")

    declared_fields, declared_shared = collect_declared_metadata(cls)
    declared_fields.update(fields or {})
    declared_shared.update(shared or ())

    metadata = ClassMetadata(
        schema_class=schema_class,
        field_mappings=declared_fields,
        shared_methods=declared_shared,
        options=LazyOptions(debug=debug, nested_wrapping=nested_wrapping),
    )

    available = {name for name, _ in iter_class_callables(cls)}
    if declared_shared and not _instances_have_dict(cls):
        raise ValidationError(
            f"{cls.__name__} declares shared computations "
            f"({', '.join(sorted(declared_shared))}) but its instances have no __dict__. "
            f"Add '__dict__' to __slots__ or remove the shared markers."
        )

    warnings = [
        f'Shared method "{name}" not found on {cls.__name__}'
        for name in sorted(declared_shared - available)
    ]
    warnings.extend(validate_class(cls, metadata, storage))
    metadata.warnings.extend(warnings)

    for warning in warnings:
        log(logging.WARNING, warning)

    register_class(cls, metadata)
    _install_constructor(cls)
    logger.debug(f"Registered {cls.__name__} with {len(metadata.field_mappings)} mapped field(s)")
    return cls


def lazy_fields(
    schema_class: Type,
    *,
    fields: Optional[Dict[str, str]] = None,
    shared: Optional[Iterable[str]] = None,
    debug: Optional[bool] = None,
    nested_wrapping: bool = False,
    storage: Optional[SchemaMetadataStorage] = None,
) -> Callable[[Type], Type]:
    """Class decorator form of ``enable_lazy_resolution``."""
    def decorator(cls: Type) -> Type:
        return enable_lazy_resolution(
            cls,
            schema_class,
            fields=fields,
            shared=shared,
            debug=debug,
            nested_wrapping=nested_wrapping,
            storage=storage,
        )
    return decorator
