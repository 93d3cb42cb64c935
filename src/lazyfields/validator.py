"""
Registration-time validation of a model class against its output type.

Fills in the field mappings and the required/optional sets of the class
metadata. A required field without a computation method is fatal when the
field was discovered with HIGH confidence; everything else is a warning.
"""

import logging
from typing import List, Optional, Type

from lazyfields.discovery import Confidence, discover_fields
from lazyfields.errors import MissingGetterError
from lazyfields.naming import (
    expected_method_hint,
    field_to_method_name,
    iter_class_callables,
    list_computation_methods,
    method_name_to_field,
)
from lazyfields.registry import ClassMetadata
from lazyfields.schema import SchemaMetadataStorage

logger = logging.getLogger(__name__)


def _register_all_methods(model_class: Type, metadata: ClassMetadata) -> List[str]:
    schema_name = getattr(metadata.schema_class, '__name__', repr(metadata.schema_class))
    for method_name in list_computation_methods(model_class):
        if method_name in metadata.shared_methods:
            continue
        metadata.field_mappings.setdefault(method_name_to_field(method_name), method_name)
    return [
        f'Could not detect fields in schema "{schema_name}". '
        f'Validation skipped - all getters will be registered.'
    ]


def _classify(metadata: ClassMetadata, field_name: str, required: bool) -> None:
    if required:
        metadata.required_fields.add(field_name)
        metadata.optional_fields.discard(field_name)
    else:
        metadata.optional_fields.add(field_name)
        metadata.required_fields.discard(field_name)


def validate_class(
    model_class: Type,
    metadata: ClassMetadata,
    storage: Optional[SchemaMetadataStorage] = None,
) -> List[str]:
    """
    Validate ``model_class`` against ``metadata.schema_class``.

    Mutates ``metadata`` in place. Explicit mappings already present in
    ``metadata.field_mappings`` take precedence over the naming convention.

    Args:
        model_class: The class providing computation methods
        metadata: Metadata to fill in
        storage: Schema storage for field discovery

    Returns:
        Warning messages

    Raises:
        MissingGetterError: A HIGH-confidence required field has no method
    """
    class_name = model_class.__name__
    schema_name = getattr(metadata.schema_class, '__name__', repr(metadata.schema_class))
    warnings: List[str] = []

    discovered = discover_fields(metadata.schema_class, storage)
    if not discovered:
        return _register_all_methods(model_class, metadata)

    computation_methods = list_computation_methods(model_class)
    available = {name for name, _ in iter_class_callables(model_class)}
    explicit = dict(metadata.field_mappings)

    for spec in discovered:
        strict = spec.required and spec.confidence is Confidence.HIGH

        if spec.name in explicit:
            method_name = explicit[spec.name]
            if method_name in available:
                _classify(metadata, spec.name, spec.required)
                continue
            if strict:
                raise MissingGetterError(class_name, spec.name, method_name)
            warnings.append(
                f'Optional field "{spec.name}" has explicit mapping to "{method_name}" but method not found'
            )
            # Mapping kept: reads resolve to None, never to a conventionally named getter
            _classify(metadata, spec.name, False)
            continue

        expected = field_to_method_name(spec.name)
        if expected not in available:
            if strict:
                raise MissingGetterError(class_name, spec.name, expected)
            if spec.required:
                warnings.append(
                    f'Field "{spec.name}" (detected with {spec.confidence.value} confidence) has no getter. '
                    f'Expected: {expected_method_hint(spec.name)}. Treated as optional, will return None.'
                )
            else:
                warnings.append(
                    f'Optional field "{spec.name}" has no getter. Expected: {expected_method_hint(spec.name)}. Will return None.'
                )
            _classify(metadata, spec.name, False)
            continue

        metadata.field_mappings[spec.name] = expected
        _classify(metadata, spec.name, spec.required)

    explicit_targets = set(explicit.values())
    for method_name in computation_methods:
        if method_name in explicit_targets or method_name in metadata.shared_methods:
            continue
        if metadata.field_mappings.get(method_name_to_field(method_name)) == method_name:
            continue
        warnings.append(f'Getter "{method_name}" does not match any field in schema "{schema_name}"')

    logger.debug(
        f"Validated {class_name} against {schema_name}: "
        f"{len(metadata.required_fields)} required, {len(metadata.optional_fields)} optional"
    )
    return warnings
