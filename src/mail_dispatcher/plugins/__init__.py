"""Provider plugins, discovery and the provider registry."""

from mail_dispatcher.plugins.discovery import (
    PluginMetadata,
    get_plugin,
    get_registered_plugins,
    register_plugin,
)
from mail_dispatcher.plugins.loader import PluginLoader, PluginLoaderError
from mail_dispatcher.plugins.registry import ProviderRegistry

__all__ = [
    "PluginLoader",
    "PluginLoaderError",
    "PluginMetadata",
    "ProviderRegistry",
    "get_plugin",
    "get_registered_plugins",
    "register_plugin",
]
