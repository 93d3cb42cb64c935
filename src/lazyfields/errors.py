"""Exception hierarchy for lazy field resolution."""

from typing import Optional


class LazyFieldsError(Exception):
    """Base class for all lazyfields errors."""


class MissingGetterError(LazyFieldsError):
    """
    Raised at registration time when a required field has no computation method.

    Carries everything needed to fix the model class without reading the
    validator: the class, the field and the exact method name it expected.
    """

    def __init__(self, class_name: str, field_name: str, expected_method: Optional[str] = None):
        if expected_method is None:
            from lazyfields.naming import field_to_method_name
            expected_method = field_to_method_name(field_name)
        self.class_name = class_name
        self.field_name = field_name
        self.expected_method = expected_method
        super().__init__(
            f'Missing getter for required field "{field_name}" in class "{class_name}". '
            f'Expected method: {expected_method}()'
        )


class ValidationError(LazyFieldsError):
    """Raised when a model class cannot be validated against its schema."""


class InvalidSchemaError(LazyFieldsError):
    """Raised when a schema class argument is unusable (e.g. not a class)."""
