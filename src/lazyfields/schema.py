"""
Schema declaration storage for output types.

Output types describe which fields a consumer may request and whether each
field may be null. Declarations are accumulated as pending registrations and
only written to the storage when they are materialized, so that output types
may reference each other before all of them exist:

    @output_type
    class OrderDTO:
        entity_id: int
        status: str
        customer_email: Optional[str] = None

    schema_storage.materialize()   # at the end of the module defining the types

Field discovery reads this storage (and can force pending registrations), see
``lazyfields.discovery``.
"""

import inspect
import logging
import sys
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type, Union

logger = logging.getLogger(__name__)


class RegistrationConsumed(Exception):
    """A pending registration was run a second time."""


@dataclass(frozen=True)
class RegisteredField:
    """A field materialized in the storage."""
    target: Type
    name: str
    type: Any = None
    nullable: bool = False


@dataclass(frozen=True)
class SchemaField:
    """
    Declaration marker used as the default of an annotated attribute.

    Args:
        nullable: The field may be null even if its annotation is not Optional
        name: Wire name, when it differs from the attribute name
    """
    nullable: bool = False
    name: Optional[str] = None


def schema_field(*, nullable: bool = False, name: Optional[str] = None) -> Any:
    return SchemaField(nullable=nullable, name=name)


class PendingRegistration:
    """A deferred registration closure that may run exactly once."""

    def __init__(self, target: Type, fn: Callable[[], None], field_level: bool = False):
        self.target = target
        self.fn = fn
        self.field_level = field_level
        self.consumed = False

    def run(self) -> None:
        if self.consumed:
            raise RegistrationConsumed(f"Registration for {getattr(self.target, '__name__', self.target)} already ran")
        self.consumed = True
        self.fn()

    def __repr__(self) -> str:
        kind = "field" if self.field_level else "class"
        return f"PendingRegistration({getattr(self.target, '__name__', self.target)!r}, {kind}, consumed={self.consumed})"


class SchemaMetadataStorage:
    """Materialized fields per output type, plus pending registrations."""

    def __init__(self):
        self._fields: Dict[Type, Dict[str, RegisteredField]] = {}
        self._pending: List[PendingRegistration] = []

    def add_field(self, target: Type, name: str, type_: Any = None, nullable: bool = False) -> RegisteredField:
        """Field registration entry point; later registrations of a name replace earlier ones."""
        registered = RegisteredField(target=target, name=name, type=type_, nullable=nullable)
        self._fields.setdefault(target, {})[name] = registered
        return registered

    def fields_for(self, target: Type) -> List[RegisteredField]:
        return list(self._fields.get(target, {}).values())

    def defer(self, target: Type, fn: Callable[[], None], field_level: bool = False) -> PendingRegistration:
        pending = PendingRegistration(target, fn, field_level=field_level)
        self._pending.append(pending)
        return pending

    def pending_for(self, target: Type, include_field_level: bool = True) -> List[PendingRegistration]:
        """Unconsumed registrations for ``target``, plus every field-level one if asked."""
        return [
            p for p in self._pending
            if not p.consumed and (p.target is target or (include_field_level and p.field_level))
        ]

    def materialize(self, target: Optional[Type] = None) -> int:
        """
        Run pending registrations (all of them, or only those for ``target``).

        Returns:
            Number of registrations that ran
        """
        ran = 0
        for pending in list(self._pending):
            if target is not None and pending.target is not target:
                continue
            try:
                pending.run()
                ran += 1
            except RegistrationConsumed:
                continue
        self._pending = [p for p in self._pending if not p.consumed]
        return ran

    def clear(self) -> None:
        self._fields.clear()
        self._pending.clear()


schema_storage = SchemaMetadataStorage()


def is_nullable_annotation(annotation: Any) -> bool:
    """True for ``Optional[X]``, ``Union[X, None]``, ``X | None`` and ``None``."""
    if annotation is None or annotation is type(None):
        return True
    if isinstance(annotation, str):
        text = annotation.replace(" ", "")
        return text.startswith("Optional[") or "|None" in text or "None|" in text
    origin = typing.get_origin(annotation)
    if origin is typing.Annotated:
        return is_nullable_annotation(typing.get_args(annotation)[0])
    if origin is Union or (sys.version_info >= (3, 10) and origin is types.UnionType):
        return type(None) in typing.get_args(annotation)
    return False


def _own_annotations(klass: Type) -> Dict[str, Any]:
    get_annotations = getattr(inspect, 'get_annotations', None)
    if get_annotations is not None:
        try:
            return dict(get_annotations(klass))
        except Exception as e:
            logger.debug(f"Could not read annotations of {klass!r}: {e}")
    return dict(klass.__dict__.get('__annotations__', {}))


def declared_annotations(cls: Type) -> Dict[str, Any]:
    """Raw annotations along the MRO, base classes first so subclasses override."""
    merged: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        merged.update(_own_annotations(klass))
    return merged


def resolve_type_hints(cls: Type) -> Dict[str, Any]:
    """
    Evaluated type hints for ``cls``.

    Falls back to the raw annotations when forward references cannot be
    resolved yet.
    """
    try:
        return typing.get_type_hints(cls)
    except Exception as e:
        logger.debug(f"Could not evaluate type hints of {cls!r}: {e}")
        return declared_annotations(cls)


def _register_annotated_fields(cls: Type, storage: SchemaMetadataStorage) -> None:
    hints = resolve_type_hints(cls)
    for attr_name in declared_annotations(cls):
        if attr_name.startswith('_'):
            continue
        annotation = hints.get(attr_name)
        default = getattr(cls, attr_name, None)
        marker = default if isinstance(default, SchemaField) else SchemaField()
        storage.add_field(
            cls,
            marker.name or attr_name,
            type_=annotation,
            nullable=marker.nullable or is_nullable_annotation(annotation),
        )


def output_type(cls: Optional[Type] = None, *, storage: Optional[SchemaMetadataStorage] = None, deferred: bool = True):
    """
    Declare an output type.

    Every public annotated attribute becomes a field. Registration is deferred
    until ``storage.materialize()`` runs (or field discovery forces it), unless
    ``deferred=False``.

    Can be used as ``@output_type`` or ``@output_type(storage=..., deferred=False)``.
    """
    def decorator(actual_cls: Type) -> Type:
        target_storage = storage if storage is not None else schema_storage

        def register() -> None:
            _register_annotated_fields(actual_cls, target_storage)

        if deferred:
            target_storage.defer(actual_cls, register)
        else:
            register()
        return actual_cls

    if cls is None:
        return decorator
    return decorator(cls)
