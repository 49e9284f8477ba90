"""Catalog of plugins offered in the plugin market."""

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from mdnotes.plugins.manager import PluginManager


class MarketPlugin(BaseModel):
    id: str
    name: str
    version: str
    description: str
    author: str
    icon: str | None = None
    downloads: int = 0
    rating: float = Field(default=0.0, ge=0, le=5)
    keywords: list[str] = Field(default_factory=list)
    installed: bool = False
    installed_version: str | None = None

    def matches(self, query: str) -> bool:
        query = query.strip().lower()
        if not query:
            return True
        return (
            query in self.name.lower()
            or query in self.description.lower()
            or any(query in keyword.lower() for keyword in self.keywords)
        )


DEFAULT_MARKET: list[MarketPlugin] = [
    MarketPlugin(
        id="ai-assistant",
        name="AI Writing Assistant",
        version="1.0.0",
        description="Continue, translate and grammar-check notes with AI",
        author="mdnotes",
        icon="✨",
        downloads=1200,
        rating=4.8,
        keywords=["AI", "writing", "translate"],
    ),
    MarketPlugin(
        id="theme-pack",
        name="Theme Pack",
        version="1.0.0",
        description="Additional editor and preview themes",
        author="mdnotes",
        icon="🎨",
        downloads=890,
        rating=4.5,
        keywords=["theme", "style"],
    ),
    MarketPlugin(
        id="image-upload",
        name="Image Upload",
        version="1.0.0",
        description="Drag and drop images into cloud storage",
        author="Community",
        icon="📷",
        downloads=560,
        rating=4.2,
        keywords=["image", "upload", "cloud"],
    ),
    MarketPlugin(
        id="export-docx",
        name="Word Export",
        version="1.0.0",
        description="Export markdown notes as Word documents",
        author="Community",
        icon="📄",
        downloads=430,
        rating=4.0,
        keywords=["export", "word", "docx"],
    ),
    MarketPlugin(
        id="git-sync",
        name="Git Sync",
        version="1.0.0",
        description="Sync notes to a git repository automatically",
        author="Community",
        icon="📂",
        downloads=320,
        rating=4.1,
        keywords=["git", "sync", "backup"],
    ),
]


class PluginCatalog:
    def __init__(self, entries: list[MarketPlugin] | None = None) -> None:
        self.entries = list(DEFAULT_MARKET if entries is None else entries)

    def search(self, query: str = "") -> list[MarketPlugin]:
        return [entry for entry in self.entries if entry.matches(query)]

    def annotate(
        self, manager: "PluginManager", entries: list[MarketPlugin] | None = None
    ) -> list[MarketPlugin]:
        """Return copies of the entries marked with their installed state."""
        annotated = []
        for entry in self.entries if entries is None else entries:
            record = manager.get(entry.id)
            annotated.append(
                entry.model_copy(
                    update={
                        "installed": record is not None,
                        "installed_version": record.manifest.version if record else None,
                    }
                )
            )
        return annotated
