"""Process-wide registry of classes enabled for lazy field resolution."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Type


@dataclass(frozen=True)
class LazyOptions:
    """Per-class options."""
    debug: Optional[bool] = None  # adds to the global flag, never overrides it
    nested_wrapping: bool = False


@dataclass
class ClassMetadata:
    """
    Resolved metadata for one registered model class.

    ``field_mappings`` maps wire field name -> computation method name. It is
    written while the class is validated and only read afterwards.
    """
    schema_class: Type
    field_mappings: Dict[str, str] = field(default_factory=dict)
    shared_methods: Set[str] = field(default_factory=set)
    required_fields: Set[str] = field(default_factory=set)
    optional_fields: Set[str] = field(default_factory=set)
    options: LazyOptions = field(default_factory=LazyOptions)
    warnings: List[str] = field(default_factory=list)

    def is_known_field(self, field_name: str) -> bool:
        return field_name in self.field_mappings or field_name in self.optional_fields


# Model class -> metadata
_class_registry: Dict[Type, ClassMetadata] = {}


def register_class(model_class: Type, metadata: ClassMetadata) -> None:
    """Register ``model_class``; registering again replaces the previous entry."""
    _class_registry[model_class] = metadata


def get_class_metadata(model_class: Type) -> Optional[ClassMetadata]:
    """Metadata for ``model_class`` or None if it is not registered."""
    return _class_registry.get(model_class)


def is_registered_class(model_class: Type) -> bool:
    return model_class in _class_registry


def get_all_registered_classes() -> Dict[Type, ClassMetadata]:
    """Copy of the registry, for tooling."""
    return dict(_class_registry)


def clear_registry() -> None:
    """Forget every registration (useful for testing)."""
    _class_registry.clear()
