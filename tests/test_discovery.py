"""Tests for schema field discovery."""
from dataclasses import dataclass
from typing import List, Optional

import pytest

from lazyfields import (
    Confidence,
    DetectionMethod,
    RegistrationConsumed,
    discover_fields,
    output_type,
    schema_field,
)
from lazyfields.discovery import (
    COMMON_FIELD_NAMES,
    discover_deferred,
    discover_heuristic,
    discover_materialized,
)

from conftest import OrderDTO


def _by_name(specs):
    return {spec.name: spec for spec in specs}


class TestMaterialized:
    def test_dataclass_fields_with_nullability(self, storage):
        specs = discover_fields(OrderDTO, storage)

        assert [s.name for s in specs] == [
            "entity_id", "status", "grand_total", "customer_email", "shipping_method",
        ]
        by_name = _by_name(specs)
        assert by_name["entity_id"].required is True
        assert by_name["customer_email"].required is False
        assert all(s.confidence is Confidence.HIGH for s in specs)
        assert by_name["entity_id"].source_type is int

    def test_storage_fields_take_precedence(self, storage):
        storage.add_field(OrderDTO, "entity_id", int)
        storage.add_field(OrderDTO, "note", str, nullable=True)

        specs = discover_materialized(OrderDTO, storage)

        assert [(s.name, s.required) for s in specs] == [("entity_id", True), ("note", False)]
        assert all(s.detection is DetectionMethod.MATERIALIZED for s in specs)

    def test_pydantic_model_fields(self, storage):
        pydantic = pytest.importorskip("pydantic")

        class ProductDTO(pydantic.BaseModel):
            sku: str
            price: Optional[float] = None
            display_name: str = pydantic.Field(alias="name")

        by_name = _by_name(discover_fields(ProductDTO, storage))

        assert set(by_name) == {"sku", "price", "name"}
        assert by_name["sku"].required is True
        assert by_name["price"].required is False
        assert by_name["sku"].confidence is Confidence.HIGH

    def test_strawberry_type_fields(self, storage):
        strawberry = pytest.importorskip("strawberry")

        @strawberry.type
        class ShipmentType:
            tracking_number: str
            carrier: Optional[str] = None

            @strawberry.field
            def eta(self) -> Optional[str]:
                return None

        specs = discover_materialized(ShipmentType, storage)
        by_name = _by_name(specs)

        assert set(by_name) == {"tracking_number", "carrier", "eta"}
        assert by_name["tracking_number"].required is True
        assert by_name["carrier"].required is False
        assert by_name["eta"].required is False
        assert all(s.confidence is Confidence.HIGH for s in specs)
        assert all(s.detection is DetectionMethod.MATERIALIZED for s in specs)


class TestDeferred:
    def test_forces_pending_output_type(self, storage):
        @output_type(storage=storage)
        class InvoiceDTO:
            entity_id: int
            total: float
            memo: Optional[str] = None
            reference: str = schema_field(nullable=True, name="external_reference")

        assert storage.fields_for(InvoiceDTO) == []

        specs = discover_fields(InvoiceDTO, storage)

        assert [(s.name, s.required) for s in specs] == [
            ("entity_id", True),
            ("total", True),
            ("memo", False),
            ("external_reference", False),
        ]
        assert all(s.detection is DetectionMethod.DEFERRED for s in specs)
        assert all(s.confidence is Confidence.HIGH for s in specs)

    def test_registration_is_written_through_and_entry_point_restored(self, storage):
        @output_type(storage=storage)
        class InvoiceDTO:
            entity_id: int

        discover_deferred(InvoiceDTO, storage)

        assert "add_field" not in vars(storage)
        assert [f.name for f in storage.fields_for(InvoiceDTO)] == ["entity_id"]
        assert storage.pending_for(InvoiceDTO) == []
        # Materialized now, so the first strategy answers
        assert discover_fields(InvoiceDTO, storage)[0].detection is DetectionMethod.MATERIALIZED

    def test_entry_point_restored_when_registration_fails(self, storage):
        class BrokenDTO:
            pass

        def explode():
            storage.add_field(BrokenDTO, "entity_id", int)
            raise RuntimeError("boom")

        storage.defer(BrokenDTO, explode)

        specs = discover_deferred(BrokenDTO, storage)

        assert "add_field" not in vars(storage)
        assert [s.name for s in specs] == ["entity_id"]

    def test_field_level_registrations_run_regardless_of_key(self, storage):
        class CustomerDTO:
            pass

        class ForwardReference:
            pass

        storage.defer(CustomerDTO, lambda: storage.add_field(CustomerDTO, "email", str))
        storage.defer(
            ForwardReference,
            lambda: storage.add_field(CustomerDTO, "orders", List[int], nullable=True),
            field_level=True,
        )

        by_name = _by_name(discover_fields(CustomerDTO, storage))

        assert set(by_name) == {"email", "orders"}
        assert by_name["orders"].required is False

    def test_registration_consumed_elsewhere_is_skipped(self, storage):
        class CustomerDTO:
            pass

        def register_and_consume_other():
            storage.add_field(CustomerDTO, "email", str)
            other.run()

        storage.defer(CustomerDTO, register_and_consume_other)
        other = storage.defer(
            CustomerDTO, lambda: storage.add_field(CustomerDTO, "name", str), field_level=True
        )

        specs = discover_fields(CustomerDTO, storage)

        assert [s.name for s in specs] == ["email", "name"]
        with pytest.raises(RegistrationConsumed):
            other.run()

    def test_direct_storage_writes_are_picked_up(self, storage):
        class CustomerDTO:
            pass

        # Bypasses the instance-level entry point
        storage.defer(CustomerDTO, lambda: type(storage).add_field(storage, CustomerDTO, "email", str))

        specs = discover_deferred(CustomerDTO, storage)

        assert [s.name for s in specs] == ["email"]
        assert specs[0].confidence is Confidence.HIGH


class TestHeuristic:
    def test_only_dictionary_names_with_type_hints(self, storage):
        class LegacyDTO:
            entity_id: int
            grand_total: float
            customer_email: str
            obscure_internal_value: str

        specs = discover_fields(LegacyDTO, storage)

        assert [s.name for s in specs] == ["entity_id", "grand_total", "customer_email"]
        assert all(s.confidence is Confidence.LOW for s in specs)
        assert all(s.required is True for s in specs)
        assert all(s.detection is DetectionMethod.HEURISTIC for s in specs)

    def test_instance_and_class_attributes_are_candidates(self, storage):
        class LegacyDTO:
            warehouse_note: str = ""
            picker_id: int

            def __init__(self):
                self.picker_id = 0

        names = [s.name for s in discover_heuristic(LegacyDTO)]

        assert names == ["picker_id", "warehouse_note"]

    def test_constructor_failure_is_swallowed(self):
        class StrictDTO:
            status: str

            def __init__(self, required_arg):
                self.required_arg = required_arg

        assert [s.name for s in discover_heuristic(StrictDTO)] == ["status"]

    def test_dictionary_covers_common_domains(self):
        for name in ("entity_id", "price", "shipping_method", "email", "created_at", "qty", "total_count"):
            assert name in COMMON_FIELD_NAMES


def test_unknown_shape_returns_empty_list(storage):
    class OpaqueDTO:
        pass

    assert discover_fields(OpaqueDTO, storage) == []
