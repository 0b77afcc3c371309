"""Plugin loader building the provider failover chain from configuration.

Each configured provider entry names a plugin. The loader resolves the
plugin's factory, calls it with the entry's name and options, validates that
the result implements the ``DeliveryProvider`` protocol, and registers the
instance in failover order.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Mapping, Sequence
from types import ModuleType
from typing import TYPE_CHECKING, Protocol, cast

from mail_dispatcher.plugins.discovery import PluginMetadata, get_plugin, get_registered_plugins
from mail_dispatcher.plugins.registry import ProviderRegistry
from mail_dispatcher.types import DeliveryProvider, HTTPClient
from mail_dispatcher.utils.sanitization import sanitize_exception

if TYPE_CHECKING:
    from mail_dispatcher.core.config import ProviderEntry

__all__ = ["PluginLoader", "PluginLoaderError", "ProviderFactory"]

logger = logging.getLogger(__name__)

_DEFAULT_FACTORY = "create_provider"


class ProviderFactory(Protocol):
    """Signature every plugin ``create_provider`` factory implements."""

    def __call__(
        self,
        *,
        name: str,
        options: Mapping[str, object],
        http_client: HTTPClient | None,
    ) -> DeliveryProvider: ...


class PluginLoaderError(Exception):
    """Raised when a plugin cannot be loaded or validated."""

    def __init__(self, message: str, *, metadata: PluginMetadata | None = None) -> None:
        super().__init__(message)
        self.metadata: PluginMetadata | None = metadata


class PluginLoader:
    """Loader responsible for instantiating configured provider plugins.

    Args:
        http_client: Shared HTTP client handed to plugins that need one
    """

    def __init__(
        self,
        *,
        http_client: HTTPClient | None = None,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._http_client: HTTPClient | None = http_client
        self._logger: logging.Logger = logger_obj or logger

    def load_providers(
        self,
        entries: Sequence[ProviderEntry],
    ) -> ProviderRegistry[DeliveryProvider]:
        """Instantiate every configured provider, preserving order.

        Loading is fail-fast: a provider that cannot be created would silently
        change the failover order, so the first failure aborts loading.

        Args:
            entries: Provider entries in failover order

        Returns:
            Registry holding the providers in the configured order

        Raises:
            PluginLoaderError: If a plugin is unknown or its factory fails
        """
        registry: ProviderRegistry[DeliveryProvider] = ProviderRegistry()
        for entry in entries:
            metadata = get_plugin(entry.plugin)
            if metadata is None:
                available = ", ".join(meta.identifier for meta in get_registered_plugins())
                msg = (
                    f"Unknown provider plugin '{entry.plugin}' for provider '{entry.name}'. "
                    f"Available plugins: {available}"
                )
                raise PluginLoaderError(msg)

            try:
                provider = self._initialize_provider(metadata, entry.name, entry.options)
            except PluginLoaderError as exc:
                self._logger.error(
                    "Failed to load provider plugin",
                    extra={
                        "plugin_identifier": metadata.identifier,
                        "provider_name": entry.name,
                        "plugin_error": sanitize_exception(exc),
                    },
                )
                raise

            _ = registry.register(provider, identifier=entry.name)
            self._logger.info(
                "Loaded provider",
                extra={"plugin_identifier": metadata.identifier, "provider_name": entry.name},
            )
        return registry

    def _initialize_provider(
        self,
        metadata: PluginMetadata,
        name: str,
        options: Mapping[str, object],
    ) -> DeliveryProvider:
        module_name, attr_path = self._resolve_entrypoint(metadata)
        try:
            module = importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - importlib provides detail
            msg = f"Unable to import plugin module '{module_name}' for plugin '{metadata.identifier}': {exc}"
            raise PluginLoaderError(msg, metadata=metadata) from exc

        try:
            factory = self._resolve_attribute(module, attr_path)
        except AttributeError as exc:
            msg = (
                f"Entrypoint attribute '{attr_path}' not found in module '{module_name}' "
                f"for plugin '{metadata.identifier}'"
            )
            raise PluginLoaderError(msg, metadata=metadata) from exc

        if not callable(factory):
            msg = f"Entrypoint '{attr_path}' of plugin '{metadata.identifier}' is not callable"
            raise PluginLoaderError(msg, metadata=metadata)

        try:
            candidate = cast(Callable[..., object], factory)(
                name=name,
                options=options,
                http_client=self._http_client,
            )
        except Exception as exc:
            msg = f"Provider '{name}' (plugin '{metadata.identifier}') could not be created: {sanitize_exception(exc)}"
            raise PluginLoaderError(msg, metadata=metadata) from exc

        if not isinstance(candidate, DeliveryProvider):
            msg = (
                "Plugin entrypoint did not return a DeliveryProvider instance "
                f"(plugin='{metadata.identifier}', object={type(candidate).__name__})"
            )
            raise PluginLoaderError(msg, metadata=metadata)
        return candidate

    @staticmethod
    def _resolve_entrypoint(metadata: PluginMetadata) -> tuple[str, str]:
        entrypoint = metadata.entrypoint
        if entrypoint:
            module_name, attr_path = (
                entrypoint.split(":", maxsplit=1) if ":" in entrypoint else (entrypoint, _DEFAULT_FACTORY)
            )
        else:
            module_name = f"{metadata.package}.provider"
            attr_path = _DEFAULT_FACTORY

        module_name = module_name.strip()
        attr_path = attr_path.strip()
        if not module_name or not attr_path:
            msg = (
                f"Invalid entrypoint definition for plugin '{metadata.identifier}': "
                f"entrypoint={metadata.entrypoint!r}"
            )
            raise PluginLoaderError(msg, metadata=metadata)
        return module_name, attr_path

    @staticmethod
    def _resolve_attribute(module: ModuleType, attr_path: str) -> object:
        target: object = module
        for part in attr_path.split("."):
            target = cast(object, getattr(target, part))
        return target
