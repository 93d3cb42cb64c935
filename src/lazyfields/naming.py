"""
Naming convention between wire field names and computation method names.

Convention: snake_case field -> ``get`` + PascalCase method.

    status        -> getStatus
    entity_id     -> getEntityId
    grand_total   -> getGrandTotal
    a_b_c_d       -> getABCD

No abbreviation handling is performed: ``getABCD`` converts back to
``a_b_c_d``, letter by letter.
"""

import re
from typing import Any, Iterator, List, Tuple, Type

COMPUTATION_PREFIX = "get"

_SNAKE_SEGMENT = re.compile(r'_([a-z])')
_UPPER_LETTER = re.compile(r'[A-Z]')


def _snake_to_camel(name: str) -> str:
    return _SNAKE_SEGMENT.sub(lambda m: m.group(1).upper(), name)


def _camel_to_snake(name: str) -> str:
    return _UPPER_LETTER.sub(lambda m: f"_{m.group(0).lower()}", name)


def field_to_method_name(field_name: str) -> str:
    """Convert a field name to the computation method name expected for it."""
    camel = _snake_to_camel(field_name)
    return f"{COMPUTATION_PREFIX}{camel[:1].upper()}{camel[1:]}"


def method_name_to_field(method_name: str) -> str:
    """
    Convert a computation method name back to its field name.

    Names that do not carry the prefix, or carry nothing after it, are
    returned unchanged.
    """
    if not is_computation_method(method_name):
        return method_name

    stripped = method_name[len(COMPUTATION_PREFIX):]
    return _camel_to_snake(stripped[:1].lower() + stripped[1:])


def is_computation_method(name: str) -> bool:
    """True if ``name`` is the prefix followed by at least one character."""
    return name.startswith(COMPUTATION_PREFIX) and len(name) > len(COMPUTATION_PREFIX)


def expected_method_hint(field_name: str) -> str:
    """Human readable call form for messages, e.g. ``getEntityId()``."""
    return f"{field_to_method_name(field_name)}()"


def iter_class_callables(cls: Type) -> Iterator[Tuple[str, Any]]:
    """
    Yield ``(name, function)`` for every callable defined along the MRO.

    Walks youngest to oldest and skips names already seen, so overrides in a
    derived class shadow the ancestor definition. ``object`` is not visited.
    staticmethod/classmethod wrappers are unwrapped to the underlying function.
    """
    seen = set()
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, value in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            if isinstance(value, (staticmethod, classmethod)):
                value = value.__func__
            if not callable(value) or isinstance(value, type):
                continue
            yield name, value


def list_computation_methods(cls: Type) -> List[str]:
    """All computation method names available on ``cls``, ancestors included."""
    return [name for name, _ in iter_class_callables(cls) if is_computation_method(name)]
