"""
Lazy field resolution for query-serving data layers.

Model classes expose many potentially expensive derived fields through
computation methods. Only the fields a query actually requests are ever
computed: consumers receive ``LazyProxy`` objects whose attribute reads call
the matching method on demand.

Key Features:
- Naming convention between wire fields and ``getCamelCase`` methods
- Registration-time validation against the output type
- Field discovery with graded confidence (materialized metadata, forced
  deferred registration, heuristic type-hint scan)
- Per-instance memoization of shared computations, with collapsing of
  concurrent async requests
- Error-transform hook, debug and timing logs

Quick Start:
    >>> from lazyfields import lazy_fields, output_type, shared, schema_storage
    >>>
    >>> @output_type
    ... class OrderDTO:
    ...     entity_id: int
    ...     customer_email: Optional[str] = None
    >>>
    >>> @lazy_fields(OrderDTO)
    ... class Order:
    ...     def __init__(self, order_id, db):
    ...         self.order_id, self.db = order_id, db
    ...     def getEntityId(self):
    ...         return self.order_id
    ...     async def getCustomerEmail(self):
    ...         return (await self.getCustomer())["email"]
    ...     @shared
    ...     async def getCustomer(self):
    ...         return await self.db.customer(self.order_id)

Modules:
    - naming: field name <-> method name convention
    - schema: output type declarations and their metadata storage
    - discovery: field discovery strategies
    - validator: registration-time validation
    - registry: class metadata registry
    - config: debug/timing/logger/error hook configuration
    - cache: per-instance shared computation cache
    - proxy: LazyProxy and wrapping
    - decorators: class enabler and method markers
"""

# Naming
from lazyfields.naming import (
    field_to_method_name,
    method_name_to_field,
    is_computation_method,
    list_computation_methods,
)

# Schema declarations
from lazyfields.schema import (
    SchemaMetadataStorage,
    RegistrationConsumed,
    output_type,
    schema_field,
    schema_storage,
)

# Discovery
from lazyfields.discovery import (
    Confidence,
    DetectionMethod,
    FieldSpec,
    discover_fields,
)

# Validation
from lazyfields.validator import validate_class

# Registry
from lazyfields.registry import (
    ClassMetadata,
    LazyOptions,
    register_class,
    get_class_metadata,
    is_registered_class,
    get_all_registered_classes,
    clear_registry,
)

# Configuration
from lazyfields.config import (
    SUPPRESS,
    ErrorContext,
    LazyConfig,
    configure,
    get_config,
    reset_config,
)

# Proxies
from lazyfields.proxy import (
    LazyProxy,
    wrap,
    wrap_nested,
    unwrap,
    get_original_instance,
    is_lazy_proxy,
)

# Class enabler
from lazyfields.decorators import (
    lazy_fields,
    enable_lazy_resolution,
    shared,
    field_name,
)

# Errors
from lazyfields.errors import (
    LazyFieldsError,
    MissingGetterError,
    ValidationError,
    InvalidSchemaError,
)

__all__ = [
    # Naming
    'field_to_method_name',
    'method_name_to_field',
    'is_computation_method',
    'list_computation_methods',
    # Schema declarations
    'SchemaMetadataStorage',
    'RegistrationConsumed',
    'output_type',
    'schema_field',
    'schema_storage',
    # Discovery
    'Confidence',
    'DetectionMethod',
    'FieldSpec',
    'discover_fields',
    # Validation
    'validate_class',
    # Registry
    'ClassMetadata',
    'LazyOptions',
    'register_class',
    'get_class_metadata',
    'is_registered_class',
    'get_all_registered_classes',
    'clear_registry',
    # Configuration
    'SUPPRESS',
    'ErrorContext',
    'LazyConfig',
    'configure',
    'get_config',
    'reset_config',
    # Proxies
    'LazyProxy',
    'wrap',
    'wrap_nested',
    'unwrap',
    'get_original_instance',
    'is_lazy_proxy',
    # Class enabler
    'lazy_fields',
    'enable_lazy_resolution',
    'shared',
    'field_name',
    # Errors
    'LazyFieldsError',
    'MissingGetterError',
    'ValidationError',
    'InvalidSchemaError',
]

__version__ = '1.0.0'
__description__ = 'Lazy field resolution for query-serving data layers'
