"""
Field discovery for output types.

Three strategies are tried in order; each runs only if the previous one found
nothing:

1. Materialized metadata (schema storage, strawberry types, dataclass fields,
   pydantic fields). Nullability is known, so confidence is HIGH. Strawberry
   types are dataclasses too; they are read first so resolver fields count.
2. Forced deferred registration: pending registrations for the class are run
   while the storage's ``add_field`` entry point is intercepted. HIGH.
3. Heuristic scan of type hints for plausible names. Nullability cannot be
   told apart from a bare type hint, so every match is "required" at LOW
   confidence.

An empty result means the shape of the schema is unknown, not that it has no
fields.
"""

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from lazyfields.schema import (
    RegistrationConsumed,
    SchemaMetadataStorage,
    is_nullable_annotation,
    resolve_type_hints,
    schema_storage,
)

logger = logging.getLogger(__name__)


class Confidence(Enum):
    HIGH = "high"
    LOW = "low"


class DetectionMethod(Enum):
    MATERIALIZED = "materialized"
    DEFERRED = "deferred"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class FieldSpec:
    """A field discovered on a schema class."""
    name: str
    required: bool
    confidence: Confidence
    source_type: Any = None
    detection: DetectionMethod = DetectionMethod.MATERIALIZED


# Names checked by the heuristic scan when a schema exposes type hints but no
# enumerable field metadata.
COMMON_FIELD_NAMES = (
    # identity
    "id", "entity_id", "increment_id", "uuid", "sku", "code", "name", "title",
    "type", "status", "state", "description", "slug", "url_key",
    # pricing
    "price", "special_price", "cost", "amount", "total", "subtotal",
    "grand_total", "base_grand_total", "tax_amount", "discount_amount",
    "currency", "currency_code",
    # shipping
    "shipping_method", "shipping_amount", "shipping_address", "billing_address",
    "estimated_delivery", "tracking_number", "weight",
    # contact
    "email", "customer_id", "customer_email", "customer_name", "firstname",
    "lastname", "phone", "telephone", "company",
    # timestamps
    "created_at", "updated_at", "deleted_at",
    # inventory
    "qty", "quantity", "stock", "in_stock", "stock_status", "is_in_stock",
    # pagination
    "items", "total_count", "page", "page_size", "current_page", "total_pages",
    "has_next_page", "cursor",
)


def _specs_from_registered(registered, detection: DetectionMethod) -> List[FieldSpec]:
    return [
        FieldSpec(
            name=f.name,
            required=not f.nullable,
            confidence=Confidence.HIGH,
            source_type=f.type,
            detection=detection,
        )
        for f in registered
    ]


# Strategy 1 sources

def _from_storage(schema_class: Type, storage: SchemaMetadataStorage) -> List[FieldSpec]:
    return _specs_from_registered(storage.fields_for(schema_class), DetectionMethod.MATERIALIZED)


def _from_strawberry(schema_class: Type) -> List[FieldSpec]:
    definition = getattr(schema_class, '__strawberry_definition__', None)
    if definition is None:
        return []
    try:
        from strawberry.types.base import StrawberryOptional
    except ImportError:
        return []

    specs = []
    for f in definition.fields:
        field_type = f.type
        specs.append(FieldSpec(
            name=f.python_name,
            required=not isinstance(field_type, StrawberryOptional),
            confidence=Confidence.HIGH,
            source_type=field_type,
        ))
    return specs


def _from_dataclass(schema_class: Type) -> List[FieldSpec]:
    if not dataclasses.is_dataclass(schema_class):
        return []
    hints = resolve_type_hints(schema_class)
    specs = []
    for f in dataclasses.fields(schema_class):
        annotation = hints.get(f.name, f.type)
        specs.append(FieldSpec(
            name=f.name,
            required=not is_nullable_annotation(annotation),
            confidence=Confidence.HIGH,
            source_type=annotation,
        ))
    return specs


def _from_pydantic(schema_class: Type) -> List[FieldSpec]:
    try:
        from pydantic import BaseModel
    except ImportError:
        return []

    if not (isinstance(schema_class, type) and issubclass(schema_class, BaseModel)):
        return []

    specs = []
    for name, info in schema_class.model_fields.items():
        specs.append(FieldSpec(
            name=info.alias or name,
            required=not is_nullable_annotation(info.annotation),
            confidence=Confidence.HIGH,
            source_type=info.annotation,
        ))
    return specs


def discover_materialized(schema_class: Type, storage: Optional[SchemaMetadataStorage] = None) -> List[FieldSpec]:
    """Strategy 1: fields already known to a schema framework."""
    storage = storage if storage is not None else schema_storage
    for source in (
        lambda: _from_storage(schema_class, storage),
        lambda: _from_strawberry(schema_class),
        lambda: _from_dataclass(schema_class),
        lambda: _from_pydantic(schema_class),
    ):
        try:
            specs = source()
        except Exception as e:
            logger.debug(f"Materialized field lookup failed for {schema_class!r}: {e}")
            continue
        if specs:
            return specs
    return []


def discover_deferred(schema_class: Type, storage: Optional[SchemaMetadataStorage] = None) -> List[FieldSpec]:
    """
    Strategy 2: force pending registrations and capture the fields they add.

    The storage's ``add_field`` is swapped for a capturing variant that still
    forwards to the original, and is restored whatever happens. Registrations
    consumed elsewhere meanwhile are skipped.
    """
    storage = storage if storage is not None else schema_storage
    captured: Dict[str, FieldSpec] = {}
    had_instance_override = 'add_field' in vars(storage)
    original_add_field = storage.add_field

    def capturing_add_field(target, name, type_=None, nullable=False):
        registered = original_add_field(target, name, type_=type_, nullable=nullable)
        if target is schema_class:
            captured[name] = FieldSpec(
                name=name,
                required=not nullable,
                confidence=Confidence.HIGH,
                source_type=type_,
                detection=DetectionMethod.DEFERRED,
            )
        return registered

    storage.add_field = capturing_add_field
    try:
        for pending in storage.pending_for(schema_class, include_field_level=True):
            try:
                pending.run()
            except RegistrationConsumed:
                continue
            except Exception as e:
                logger.debug(f"Deferred registration {pending!r} failed: {e}")
    finally:
        if had_instance_override:
            storage.add_field = original_add_field
        else:
            del storage.add_field

    if captured:
        return list(captured.values())

    # A registration may have written to the storage without going through add_field
    return _specs_from_registered(storage.fields_for(schema_class), DetectionMethod.DEFERRED)


def _candidate_names(schema_class: Type) -> List[str]:
    candidates: Dict[str, None] = {}

    try:
        instance = schema_class()
        for name in vars(instance):
            candidates[name] = None
    except Exception as e:
        logger.debug(f"Could not instantiate {schema_class!r} for field scan: {e}")

    for name in vars(schema_class):
        if not (name.startswith('__') and name.endswith('__')):
            candidates[name] = None

    for name in COMMON_FIELD_NAMES:
        candidates[name] = None

    return list(candidates)


def discover_heuristic(schema_class: Type) -> List[FieldSpec]:
    """Strategy 3: candidate names that carry a type hint, all LOW confidence."""
    try:
        hints = resolve_type_hints(schema_class)
    except Exception as e:
        logger.debug(f"Could not read type hints of {schema_class!r}: {e}")
        return []

    return [
        FieldSpec(
            name=name,
            required=True,
            confidence=Confidence.LOW,
            source_type=hints[name],
            detection=DetectionMethod.HEURISTIC,
        )
        for name in _candidate_names(schema_class)
        if name in hints
    ]


def discover_fields(schema_class: Type, storage: Optional[SchemaMetadataStorage] = None) -> List[FieldSpec]:
    """
    Discover the declared fields of ``schema_class``.

    Args:
        schema_class: Output type to inspect
        storage: Schema storage to consult (defaults to the process storage)

    Returns:
        Discovered fields in declaration order, or an empty list if the
        shape of the schema could not be determined
    """
    for strategy in (
        lambda: discover_materialized(schema_class, storage),
        lambda: discover_deferred(schema_class, storage),
        lambda: discover_heuristic(schema_class),
    ):
        specs = strategy()
        if specs:
            logger.debug(
                f"Discovered {len(specs)} field(s) on {getattr(schema_class, '__name__', schema_class)} "
                f"via {specs[0].detection.value}"
            )
            return specs
    return []
