"""Tests for plugin discovery and metadata registration."""

import pytest

from mail_dispatcher.plugins import (
    PluginMetadata,
    get_plugin,
    get_registered_plugins,
    register_plugin,
)


def test_registered_plugins_include_bundled_providers() -> None:
    """Bundled plugins should register metadata automatically."""
    identifiers = {plugin.identifier for plugin in get_registered_plugins()}

    assert {"simulated", "webhook"}.issubset(identifiers)


def test_get_plugin_returns_metadata() -> None:
    metadata = get_plugin("webhook")

    assert metadata is not None
    assert metadata.package == "mail_dispatcher.plugins.webhook"


def test_get_plugin_unknown_identifier() -> None:
    assert get_plugin("carrier_pigeon") is None


def test_register_plugin_rejects_duplicates() -> None:
    """Duplicate plugin registration should be prevented."""
    _ = get_registered_plugins()
    metadata = PluginMetadata(
        identifier="simulated",
        name="Duplicate Simulated",
        package="mail_dispatcher.plugins.simulated",
        version="1.0.0",
    )
    with pytest.raises(ValueError, match="already registered"):
        register_plugin(metadata)


@pytest.mark.parametrize("identifier", ["Upper", "with-dash", "9lives", ""])
def test_register_plugin_rejects_invalid_identifiers(identifier: str) -> None:
    metadata = PluginMetadata(
        identifier=identifier,
        name="Invalid",
        package=f"mail_dispatcher.plugins.{identifier}",
        version="1.0.0",
    )
    with pytest.raises(ValueError):
        register_plugin(metadata)


def test_register_plugin_requires_matching_package() -> None:
    metadata = PluginMetadata(
        identifier="mismatch",
        name="Mismatch",
        package="mail_dispatcher.plugins.other",
        version="1.0.0",
    )
    with pytest.raises(ValueError, match="must match package name"):
        register_plugin(metadata)
