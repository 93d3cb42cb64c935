"""Tests for configuration and the class registry."""
import logging
from dataclasses import FrozenInstanceError, dataclass

import pytest

from lazyfields import (
    SUPPRESS,
    ClassMetadata,
    ErrorContext,
    LazyConfig,
    clear_registry,
    configure,
    get_all_registered_classes,
    get_class_metadata,
    get_config,
    is_registered_class,
    register_class,
    reset_config,
)
from lazyfields.config import handle_error, is_debug_enabled, log


def test_default_config():
    config = get_config()

    assert config.debug is False
    assert config.timing is False
    assert config.logger.name == "lazyfields"
    assert config.on_error is None


def test_configure_updates_only_given_options():
    configure(debug=True)
    config = configure(timing=True)

    assert config is get_config()
    assert config.debug is True
    assert config.timing is True


def test_configure_rejects_unknown_options():
    with pytest.raises(TypeError, match="verbose"):
        configure(verbose=True)

    assert get_config().debug is False


def test_config_is_immutable():
    with pytest.raises(FrozenInstanceError):
        get_config().debug = True


def test_reset_config():
    configure(debug=True, timing=True, on_error=lambda ctx: SUPPRESS)
    reset_config()

    assert get_config() == LazyConfig()


def test_earlier_snapshots_are_unaffected_by_configure():
    before = get_config()
    configure(debug=True)

    assert before.debug is False


@pytest.mark.parametrize("class_debug, global_debug, expected", [
    (None, False, False),
    (None, True, True),
    (True, False, True),
    (False, True, True),
    (False, False, False),
])
def test_is_debug_enabled(class_debug, global_debug, expected):
    assert is_debug_enabled(class_debug, LazyConfig(debug=global_debug)) is expected


def test_log_appends_context(caplog):
    caplog.set_level(logging.DEBUG, logger="lazyfields")

    log(logging.INFO, "Getter completed: Order.getEntityId()", duration="1.25ms")

    assert caplog.records[-1].getMessage() == "Getter completed: Order.getEntityId() duration=1.25ms"
    assert caplog.records[-1].levelno == logging.INFO


class TestHandleError:

    def test_without_hook_returns_original(self):
        error = ValueError("boom")
        assert handle_error("Order", "status", "getStatus", error, LazyConfig()) is error

    def test_hook_receives_context(self):
        seen = []
        error = ValueError("boom")

        handle_error("Order", "status", "getStatus", error, LazyConfig(on_error=seen.append))

        assert seen == [ErrorContext("Order", "status", "getStatus", error)]

    def test_hook_outcomes(self):
        error = ValueError("boom")
        replacement = RuntimeError("replaced")

        assert handle_error("Order", "status", "getStatus", error, LazyConfig(on_error=lambda ctx: SUPPRESS)) is SUPPRESS
        assert handle_error("Order", "status", "getStatus", error, LazyConfig(on_error=lambda ctx: replacement)) is replacement
        assert handle_error("Order", "status", "getStatus", error, LazyConfig(on_error=lambda ctx: None)) is error

    def test_hook_errors_propagate(self):
        def broken(ctx):
            raise KeyError("hook failure")

        with pytest.raises(KeyError):
            handle_error("Order", "status", "getStatus", ValueError(), LazyConfig(on_error=broken))


def test_suppress_is_singleton():
    assert type(SUPPRESS)() is SUPPRESS
    assert repr(SUPPRESS) == "SUPPRESS"


@dataclass
class RegistryDTO:
    code: str


class TestRegistry:

    def test_register_and_lookup(self):
        class Model:
            pass

        metadata = ClassMetadata(schema_class=RegistryDTO)
        register_class(Model, metadata)

        assert is_registered_class(Model)
        assert get_class_metadata(Model) is metadata
        assert get_all_registered_classes()[Model] is metadata

    def test_unregistered_class(self):
        class Model:
            pass

        assert not is_registered_class(Model)
        assert get_class_metadata(Model) is None

    def test_registration_is_per_class_not_inherited(self):
        class Model:
            pass

        class SubModel(Model):
            pass

        register_class(Model, ClassMetadata(schema_class=RegistryDTO))

        assert get_class_metadata(SubModel) is None

    def test_last_registration_wins(self):
        class Model:
            pass

        first = ClassMetadata(schema_class=RegistryDTO)
        second = ClassMetadata(schema_class=RegistryDTO)
        register_class(Model, first)
        register_class(Model, second)

        assert get_class_metadata(Model) is second

    def test_all_registered_classes_is_a_copy(self):
        class Model:
            pass

        snapshot = get_all_registered_classes()
        register_class(Model, ClassMetadata(schema_class=RegistryDTO))

        assert Model not in snapshot

    def test_clear_registry(self):
        class Model:
            pass

        register_class(Model, ClassMetadata(schema_class=RegistryDTO))
        clear_registry()

        assert get_all_registered_classes() == {}

    def test_is_known_field(self):
        metadata = ClassMetadata(
            schema_class=RegistryDTO,
            field_mappings={"code": "getCode"},
            optional_fields={"label"},
        )

        assert metadata.is_known_field("code")
        assert metadata.is_known_field("label")
        assert not metadata.is_known_field("getCode")
