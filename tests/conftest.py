"""Pytest configuration and shared fixtures."""
import pytest
from dataclasses import dataclass
from typing import Optional

from lazyfields import SchemaMetadataStorage, clear_registry, reset_config, schema_storage
import lazyfields.registry as registry_module


@dataclass
class OrderDTO:
    """Output type used across tests."""
    entity_id: int
    status: str
    grand_total: float
    customer_email: Optional[str] = None
    shipping_method: Optional[str] = None


class CallCounter:
    """Counts calls per name."""

    def __init__(self):
        self.calls = {}

    def hit(self, name):
        self.calls[name] = self.calls.get(name, 0) + 1

    def __getitem__(self, name):
        return self.calls.get(name, 0)


@pytest.fixture(autouse=True)
def reset_lazyfields_state():
    """Reset registry, configuration and schema storage around each test."""
    original_registry = dict(registry_module._class_registry)

    yield

    clear_registry()
    registry_module._class_registry.update(original_registry)
    reset_config()
    schema_storage.clear()


@pytest.fixture
def storage():
    """A schema storage private to the test."""
    return SchemaMetadataStorage()


@pytest.fixture
def counter():
    return CallCounter()
