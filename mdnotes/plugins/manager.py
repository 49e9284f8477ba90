"""Plugin manager: installs plugins and drives their lifecycle."""

import asyncio
import inspect
import itertools
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from graphlib import CycleError, TopologicalSorter
from typing import TYPE_CHECKING, Any

from mdnotes.exceptions import (
    ActivationError,
    AlreadyInstalledError,
    DeactivationError,
    NotInstalledError,
    PluginError,
)
from mdnotes.logger import get_logger
from mdnotes.plugins.base import NotePlugin
from mdnotes.plugins.context import ContextFactory, PluginContext
from mdnotes.plugins.models import (
    InstalledPlugin,
    PluginState,
    TransitionResult,
    utc_now,
)
from mdnotes.plugins.persistence import (
    JsonFileKeyValueStore,
    KeyValuePersistence,
    PersistenceAdapter,
)
from mdnotes.plugins.registry import ContributionRegistry

if TYPE_CHECKING:
    from mdnotes.config import NotesConfig
    from mdnotes.host import HostBridge

logger = get_logger(__name__)


async def _call_hook(hook: Callable[..., Awaitable[None] | None], *args: Any) -> None:
    result = hook(*args)
    if inspect.isawaitable(result):
        await result


class PluginManager:
    """
    Owns the installed plugin table and moves plugins between lifecycle states.

    Lifecycle:
    1. register() - Make a plugin package available to this process
    2. load() - Restore the installed table from persistence
    3. install() / enable() - Record the plugin and activate it
    4. disable() / uninstall() - Deactivate and release everything it registered

    Every change to the table is written through to the persistence adapter
    before the call returns. Exceptions raised by plugin hooks are recorded on
    the plugin and never propagate to the caller. Transitions for the same
    plugin id are serialized by a per-id lock that outlives uninstall. A request
    queued behind an uninstall never applies to a later install of the same id.

    """

    def __init__(self, factory: ContextFactory, persistence: PersistenceAdapter) -> None:
        self.factory = factory
        self.persistence = persistence
        self._installed: dict[str, InstalledPlugin] = {}
        self._packages: dict[str, NotePlugin] = {}
        self._contexts: dict[str, PluginContext] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Bumped whenever an id is installed or reloaded
        self._generations: dict[str, int] = {}
        self._generation_counter = itertools.count()

    @classmethod
    def from_config(cls, config: "NotesConfig", host: "HostBridge") -> "PluginManager":
        """Build a manager persisting into the configured data directory."""
        store = JsonFileKeyValueStore(config.storage_path)
        factory = ContextFactory(
            host,
            ContributionRegistry(),
            store,
            network_timeout=config.network_timeout,
        )
        return cls(factory, KeyValuePersistence(store))

    @property
    def registry(self) -> ContributionRegistry:
        return self.factory.registry

    # Queries

    def get(self, plugin_id: str) -> InstalledPlugin | None:
        return self._installed.get(plugin_id)

    def list_installed(self) -> list[InstalledPlugin]:
        return list(self._installed.values())

    def is_registered(self, plugin_id: str) -> bool:
        return plugin_id in self._packages

    def package(self, plugin_id: str) -> NotePlugin | None:
        return self._packages.get(plugin_id)

    def context_for(self, plugin_id: str) -> PluginContext | None:
        return self._contexts.get(plugin_id)

    # Table bookkeeping

    def _require(self, plugin_id: str) -> InstalledPlugin:
        record = self._installed.get(plugin_id)
        if record is None:
            raise NotInstalledError(plugin_id)
        return record

    def _lock(self, plugin_id: str) -> asyncio.Lock:
        return self._locks.setdefault(plugin_id, asyncio.Lock())

    @asynccontextmanager
    async def _transition(self, plugin_id: str) -> AsyncIterator[InstalledPlugin]:
        """Hold the per-id lock for the install that was current when the request was made."""
        self._require(plugin_id)
        generation = self._generations.get(plugin_id)
        async with self._lock(plugin_id):
            if self._generations.get(plugin_id) != generation:
                raise NotInstalledError(plugin_id)
            yield self._require(plugin_id)

    def _persist(self) -> None:
        try:
            self.persistence.save_all(list(self._installed.values()))
        except Exception:
            # The in-memory table stays authoritative for this process
            logger.exception("Failed to persist the installed plugin table")

    def _update(self, plugin_id: str, **changes: Any) -> InstalledPlugin:
        record = self._require(plugin_id).model_copy(
            update={**changes, "updated_at": utc_now()}
        )
        self._installed[plugin_id] = record
        self._persist()
        return record

    def _set_state(
        self, plugin_id: str, state: PluginState, error: str | None = None
    ) -> InstalledPlugin:
        return self._update(plugin_id, state=state, error=error)

    def _release(self, plugin_id: str) -> None:
        context = self._contexts.pop(plugin_id, None)
        if context is not None:
            released = context.revoke()
            logger.debug(f"Released {released} resources held by {plugin_id}")

    # Packages and startup

    def register(self, plugin: NotePlugin) -> None:
        """Make a plugin package available without installing it."""
        plugin_id = plugin.id
        current = self._packages.get(plugin_id)
        if current is not None and current is not plugin and plugin_id in self._contexts:
            raise PluginError(
                f"Cannot replace the package for '{plugin_id}' while it is active"
            )
        self._packages[plugin_id] = plugin

    def load(self) -> list[InstalledPlugin]:
        """
        Restore the installed table from persistence.

        No hook runs in a fresh process, so records left in a transient or
        active state are reset to inactive. Error records keep their message.
        """
        if self._contexts:
            raise PluginError("Cannot reload installed plugins while plugins are active")

        try:
            records = self.persistence.load_all()
        except Exception:
            logger.exception("Failed to load the installed plugin table, starting empty")
            records = []

        self._installed = {}
        self._generations = {}
        for record in records:
            if record.state is PluginState.ACTIVE or record.state.is_transitioning:
                record = record.model_copy(update={"state": PluginState.INACTIVE})
            self._installed[record.id] = record
            self._generations[record.id] = next(self._generation_counter)

        missing = [plugin_id for plugin_id in self._installed if plugin_id not in self._packages]
        if missing:
            logger.warning(f"Installed plugins without a registered package: {missing}")

        self._persist()
        return self.list_installed()

    def _activation_order(self) -> list[str]:
        enabled = [record.id for record in self._installed.values() if record.enabled]
        graph: dict[str, set[str]] = {}
        for plugin_id in enabled:
            dependencies = set()
            for dependency in self._installed[plugin_id].manifest.dependencies:
                if dependency in self._installed:
                    dependencies.add(dependency)
                else:
                    logger.warning(
                        f"Plugin '{plugin_id}' depends on '{dependency}' which is not installed"
                    )
            graph[plugin_id] = dependencies

        try:
            ordered = list(TopologicalSorter(graph).static_order())
        except CycleError as e:
            logger.warning(f"Circular plugin dependency, using install order: {e}")
            return enabled

        return [plugin_id for plugin_id in ordered if plugin_id in graph]

    async def activate_enabled(self) -> dict[str, TransitionResult]:
        """Activate every enabled plugin, dependencies first."""
        results = {}
        for plugin_id in self._activation_order():
            results[plugin_id] = await self.activate(plugin_id)

        logger.info(f"Activated enabled plugins: {results}")
        return results

    async def shutdown(self) -> None:
        """Deactivate every active plugin, leaving enabled flags untouched."""
        for plugin_id in list(self._contexts):
            if plugin_id in self._installed:
                await self.deactivate(plugin_id)
            else:
                self._release(plugin_id)

    # Lifecycle

    async def install(self, plugin: NotePlugin) -> TransitionResult:
        """Record a new plugin as installed and enabled, then activate it."""
        plugin_id = plugin.id
        if plugin_id in self._installed:
            raise AlreadyInstalledError(plugin_id)

        async with self._lock(plugin_id):
            if plugin_id in self._installed:
                raise AlreadyInstalledError(plugin_id)

            self.register(plugin)
            self._installed[plugin_id] = InstalledPlugin(manifest=plugin.manifest)
            self._generations[plugin_id] = next(self._generation_counter)
            self._persist()
            logger.info(f"Installed plugin {plugin_id} v{plugin.manifest.version}")

            return await self._activate_locked(plugin_id)

    async def uninstall(self, plugin_id: str) -> None:
        """Deactivate the plugin if needed and forget it completely."""
        async with self._transition(plugin_id):
            await self._deactivate_locked(plugin_id)
            self._release(plugin_id)
            self._packages.pop(plugin_id, None)
            del self._installed[plugin_id]
            del self._generations[plugin_id]
            self._persist()

        logger.info(f"Uninstalled plugin {plugin_id}")

    async def enable(self, plugin_id: str) -> TransitionResult:
        """Mark the plugin enabled and activate it. Also retries a plugin in error."""
        record = self._require(plugin_id)
        if record.state is PluginState.ACTIVATING:
            return TransitionResult.IN_PROGRESS

        async with self._transition(plugin_id) as record:
            if not record.enabled:
                self._update(plugin_id, enabled=True)
            return await self._activate_locked(plugin_id)

    async def disable(self, plugin_id: str) -> TransitionResult:
        """Deactivate the plugin and mark it disabled."""
        record = self._require(plugin_id)
        if not record.enabled:
            return TransitionResult.UNCHANGED

        async with self._transition(plugin_id):
            result = await self._deactivate_locked(plugin_id)
            self._update(plugin_id, enabled=False)
        return result

    async def activate(self, plugin_id: str) -> TransitionResult:
        record = self._require(plugin_id)
        if record.state is PluginState.ACTIVATING:
            return TransitionResult.IN_PROGRESS

        async with self._transition(plugin_id):
            return await self._activate_locked(plugin_id)

    async def deactivate(self, plugin_id: str) -> TransitionResult:
        record = self._require(plugin_id)
        if record.state is PluginState.DEACTIVATING:
            return TransitionResult.IN_PROGRESS

        async with self._transition(plugin_id):
            return await self._deactivate_locked(plugin_id)

    async def _activate_locked(self, plugin_id: str) -> TransitionResult:
        record = self._require(plugin_id)
        if record.state is PluginState.ACTIVE:
            return TransitionResult.UNCHANGED

        if not record.enabled:
            logger.warning(f"Plugin {plugin_id} is disabled, not activating it")
            return TransitionResult.DISABLED

        plugin = self._packages.get(plugin_id)
        if plugin is None:
            logger.warning(f"No package registered for plugin {plugin_id}, skipping activation")
            return TransitionResult.MISSING_PACKAGE

        self._set_state(plugin_id, PluginState.ACTIVATING)
        context = self.factory.create(plugin_id)
        self._contexts[plugin_id] = context

        try:
            await _call_hook(plugin.activate, context)
        except asyncio.CancelledError:
            self._release(plugin_id)
            self._set_state(plugin_id, PluginState.INACTIVE)
            raise
        except Exception as e:
            failure = ActivationError(plugin_id, e)
            logger.error(str(failure), exc_info=e)
            self._release(plugin_id)
            self._set_state(plugin_id, PluginState.ERROR, failure.message)
            return TransitionResult.FAILED

        self._set_state(plugin_id, PluginState.ACTIVE)
        logger.info(f"Activated plugin {plugin_id}")
        return TransitionResult.COMPLETED

    async def _deactivate_locked(self, plugin_id: str) -> TransitionResult:
        record = self._require(plugin_id)
        if record.state is not PluginState.ACTIVE:
            # Nothing runs, but a failed activation may have left resources behind
            self._release(plugin_id)
            return TransitionResult.UNCHANGED

        plugin = self._packages.get(plugin_id)
        self._set_state(plugin_id, PluginState.DEACTIVATING)

        try:
            if plugin is not None:
                await _call_hook(plugin.deactivate)
        except asyncio.CancelledError:
            self._release(plugin_id)
            self._set_state(plugin_id, PluginState.INACTIVE)
            raise
        except Exception as e:
            failure = DeactivationError(plugin_id, e)
            logger.error(str(failure), exc_info=e)
            self._release(plugin_id)
            self._set_state(plugin_id, PluginState.ERROR, failure.message)
            return TransitionResult.FAILED

        self._release(plugin_id)
        self._set_state(plugin_id, PluginState.INACTIVE)
        logger.info(f"Deactivated plugin {plugin_id}")
        return TransitionResult.COMPLETED
