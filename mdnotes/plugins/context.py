"""Per-plugin contexts and the factory that builds them."""

from typing import TYPE_CHECKING

from mdnotes.plugins.capabilities import (
    CapabilityScope,
    EditorCapability,
    EventsCapability,
    NetworkCapability,
    PluginLogger,
    StorageCapability,
    UICapability,
)
from mdnotes.plugins.disposable import DisposableSet
from mdnotes.plugins.events import EventBus
from mdnotes.plugins.persistence import KeyValueStore
from mdnotes.plugins.registry import ContributionRegistry

if TYPE_CHECKING:
    from mdnotes.host import HostBridge


class PluginContext:
    """
    Everything a plugin may touch, built once per activation.

    The context owns the set of disposables the plugin acquires through it.
    Once revoked, every capability except logging raises ContextRevokedError.

    """

    def __init__(
        self,
        plugin_id: str,
        *,
        host: "HostBridge",
        registry: ContributionRegistry,
        store: KeyValueStore,
        bus: EventBus,
        disposables: DisposableSet,
        network_timeout: float,
    ) -> None:
        self.plugin_id = plugin_id
        self.plugin_path = f"/plugins/{plugin_id}"
        self._scope = CapabilityScope(plugin_id, disposables)

        self.editor = EditorCapability(self._scope, host.document)
        self.ui = UICapability(self._scope, host, registry)
        self.storage = StorageCapability(self._scope, store)
        self.network = NetworkCapability(self._scope, host, network_timeout)
        self.events = EventsCapability(self._scope, bus)
        self.log = PluginLogger(plugin_id)

    @property
    def disposables(self) -> DisposableSet:
        return self._scope.disposables

    @property
    def revoked(self) -> bool:
        return self._scope.revoked

    def revoke(self) -> int:
        """Release everything the plugin registered and cut off its capabilities."""
        released = self._scope.disposables.dispose_all()
        self._scope.revoked = True
        return released


class ContextFactory:
    """Builds plugin contexts that share one host, registry, store and event bus."""

    def __init__(
        self,
        host: "HostBridge",
        registry: ContributionRegistry,
        store: KeyValueStore,
        bus: EventBus | None = None,
        network_timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.registry = registry
        self.store = store
        self.bus = bus or EventBus()
        self.network_timeout = network_timeout

    def create(self, plugin_id: str, disposables: DisposableSet | None = None) -> PluginContext:
        return PluginContext(
            plugin_id,
            host=self.host,
            registry=self.registry,
            store=self.store,
            bus=self.bus,
            disposables=disposables if disposables is not None else DisposableSet(),
            network_timeout=self.network_timeout,
        )
