"""Simulated provider plugin metadata registration."""

from mail_dispatcher.plugins.discovery import PluginMetadata, register_plugin

register_plugin(
    PluginMetadata(
        identifier="simulated",
        name="Simulated",
        package=__name__,
        version="0.1.0",
        description="Pretends to deliver messages, failing with a configurable probability.",
    )
)
