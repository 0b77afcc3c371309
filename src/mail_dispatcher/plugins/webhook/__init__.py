"""Webhook provider plugin metadata registration."""

from mail_dispatcher.plugins.discovery import PluginMetadata, register_plugin

register_plugin(
    PluginMetadata(
        identifier="webhook",
        name="Webhook",
        package=__name__,
        version="0.1.0",
        description="Delivers messages by POSTing them as JSON to an HTTP endpoint.",
    )
)
