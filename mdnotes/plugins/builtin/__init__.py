"""Plugins that ship with mdnotes."""

from typing import TYPE_CHECKING

from mdnotes.plugins.base import NotePlugin
from mdnotes.plugins.builtin.ai_assistant import AIAssistantPlugin

if TYPE_CHECKING:
    from mdnotes.plugins.manager import PluginManager

BUILTIN_PLUGINS: dict[str, type[NotePlugin]] = {
    AIAssistantPlugin.manifest.id: AIAssistantPlugin,
}


def register_builtin_plugins(manager: "PluginManager") -> list[str]:
    """Register a fresh instance of every built-in plugin and return their ids."""
    for plugin_class in BUILTIN_PLUGINS.values():
        manager.register(plugin_class())
    return list(BUILTIN_PLUGINS)


__all__ = ["AIAssistantPlugin", "BUILTIN_PLUGINS", "register_builtin_plugins"]
