"""Plugin runtime: manifests, capabilities, contribution registry and lifecycle management."""

from .base import NotePlugin
from .catalog import MarketPlugin, PluginCatalog
from .context import ContextFactory, PluginContext
from .disposable import Disposable, DisposableSet
from .events import EventBus
from .manager import PluginManager
from .models import (
    Cancelled,
    Confirmed,
    ContextMenuItem,
    InstalledPlugin,
    PluginManifest,
    PluginState,
    ToolbarButton,
    TransitionResult,
)
from .persistence import (
    JsonFileKeyValueStore,
    KeyValuePersistence,
    MemoryKeyValueStore,
)
from .registry import ContributionRegistry

__all__ = [
    "Cancelled",
    "Confirmed",
    "ContextFactory",
    "ContextMenuItem",
    "ContributionRegistry",
    "Disposable",
    "DisposableSet",
    "EventBus",
    "InstalledPlugin",
    "JsonFileKeyValueStore",
    "KeyValuePersistence",
    "MarketPlugin",
    "MemoryKeyValueStore",
    "NotePlugin",
    "PluginCatalog",
    "PluginContext",
    "PluginManager",
    "PluginManifest",
    "PluginState",
    "ToolbarButton",
    "TransitionResult",
]
