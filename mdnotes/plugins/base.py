"""Base plugin class for mdnotes."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import TYPE_CHECKING

from mdnotes.plugins.models import PluginManifest

if TYPE_CHECKING:
    from mdnotes.plugins.context import PluginContext


class NotePlugin(ABC):
    """
    Base class for all mdnotes plugins.

    Subclasses set `manifest` and implement `activate`. Both hooks may be
    plain functions or coroutines.

    """

    manifest: PluginManifest

    @property
    def id(self) -> str:
        return self.manifest.id

    @abstractmethod
    def activate(self, ctx: "PluginContext") -> Awaitable[None] | None:
        """Register contributions and start using capabilities."""
        pass

    def deactivate(self) -> Awaitable[None] | None:
        """Release plugin-held state. Registrations are released by the manager."""
        pass
