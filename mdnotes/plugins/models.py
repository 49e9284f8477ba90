"""Plugin data models: manifests, installed records, contributions and capability values."""

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

Action = Callable[[], Awaitable[None] | None]


class ToolbarButtonContribution(BaseModel):
    """A toolbar button declared in the manifest."""

    id: str
    title: str
    icon: str
    command: str
    group: str | None = None
    order: int | None = None


class ContextMenuContribution(BaseModel):
    """A context-menu item declared in the manifest."""

    id: str
    label: str
    command: str
    group: str | None = None
    order: int | None = None
    when: str | None = None


class CommandContribution(BaseModel):
    id: str
    title: str
    category: str | None = None


class ConfigurationProperty(BaseModel):
    type: Literal["string", "number", "boolean", "array", "object"]
    default: Any = None
    description: str | None = None
    enum: list[str] | None = None
    minimum: float | None = None
    maximum: float | None = None


class ConfigurationContribution(BaseModel):
    title: str
    properties: dict[str, ConfigurationProperty] = Field(default_factory=dict)


class KeybindingContribution(BaseModel):
    command: str
    key: str
    mac: str | None = None
    when: str | None = None


class PluginContributes(BaseModel):
    """Extension points a plugin declares up front."""

    toolbar_buttons: list[ToolbarButtonContribution] = Field(default_factory=list)
    context_menu_items: list[ContextMenuContribution] = Field(default_factory=list)
    commands: list[CommandContribution] = Field(default_factory=list)
    configuration: ConfigurationContribution | None = None
    keybindings: list[KeybindingContribution] = Field(default_factory=list)


class PluginManifest(BaseModel):
    """Immutable identity and metadata of a plugin."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Globally unique, stable across versions")
    name: str
    version: str
    description: str = ""
    author: str = ""
    icon: str | None = None
    keywords: list[str] = Field(default_factory=list)
    repository: str | None = None
    homepage: str | None = None
    license: str | None = None
    dependencies: dict[str, str] = Field(
        default_factory=dict,
        description="Mapping of plugin id to the version range it requires",
    )
    contributes: PluginContributes | None = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Plugin ids form the prefix of every qualified id, so they can't contain ':'."""
        if ":" in v:
            raise ValueError("Plugin id cannot contain ':'")
        return v


class PluginState(str, Enum):
    """Lifecycle state of an installed plugin."""

    INACTIVE = "inactive"
    ACTIVATING = "activating"
    ACTIVE = "active"
    DEACTIVATING = "deactivating"
    ERROR = "error"

    @property
    def is_transitioning(self) -> bool:
        return self in (PluginState.ACTIVATING, PluginState.DEACTIVATING)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InstalledPlugin(BaseModel):
    """Persisted record of an installed plugin."""

    manifest: PluginManifest
    state: PluginState = PluginState.INACTIVE
    enabled: bool = True
    installed_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None
    error: str | None = None

    @property
    def id(self) -> str:
        return self.manifest.id


class TransitionResult(str, Enum):
    """Outcome of a manager lifecycle request."""

    COMPLETED = "completed"
    FAILED = "failed"
    # The requested state already holds
    UNCHANGED = "unchanged"
    # Another transition for the same plugin is in flight
    IN_PROGRESS = "in_progress"
    # No in-memory package is registered for the installed record
    MISSING_PACKAGE = "missing_package"
    # The user disabled the plugin; it may not be activated
    DISABLED = "disabled"


@dataclass
class ToolbarButton:
    """A toolbar button registered at runtime through the UI capability."""

    id: str
    title: str
    on_click: Action
    icon: str = ""
    group: str | None = None
    order: int | None = None


@dataclass
class ContextMenuItem:
    """A context-menu item registered at runtime through the UI capability."""

    id: str
    label: str
    on_click: Action
    group: str | None = None
    order: int | None = None
    when: Callable[[], bool] | None = None


@dataclass(frozen=True)
class EditorSelection:
    start: int
    end: int
    text: str


@dataclass(frozen=True)
class NoteInfo:
    id: str
    title: str
    path: str | None = None


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    message: str
    type: NotificationType
    source: str | None = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class ModalOptions:
    title: str
    content: str = ""
    confirm_text: str = "OK"
    cancel_text: str = "Cancel"
    show_cancel: bool = True


@dataclass
class InputBoxOptions:
    title: str | None = None
    placeholder: str | None = None
    value: str = ""
    # Returns an error message to reject the input, or None to accept it
    validate_input: Callable[[str], str | None] | None = None


@dataclass(frozen=True)
class QuickPickItem:
    label: str
    description: str | None = None
    detail: str | None = None


@dataclass
class QuickPickOptions:
    title: str | None = None
    placeholder: str | None = None


@dataclass(frozen=True)
class Confirmed(Generic[T]):
    """The user answered a prompt."""

    value: T

    @property
    def cancelled(self) -> bool:
        return False


@dataclass(frozen=True)
class Cancelled:
    """The user dismissed a prompt."""

    @property
    def cancelled(self) -> bool:
        return True


PromptResult = Confirmed[T] | Cancelled


HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]


@dataclass
class FetchOptions:
    method: HttpMethod = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    # Non-string bodies are sent as JSON
    body: str | dict[str, Any] | list[Any] | None = None
    # Seconds; falls back to the configured network timeout
    timeout: float | None = None


@dataclass(frozen=True)
class FetchResponse:
    status: int
    status_text: str
    headers: dict[str, str]
    content: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.content

    def json(self) -> Any:
        return json.loads(self.content)


class JsonValue(BaseModel):
    """A stored value that decoded as JSON."""

    kind: Literal["json"] = "json"
    value: Any


class RawValue(BaseModel):
    """A stored value that did not decode as JSON and is kept as the raw string."""

    kind: Literal["raw"] = "raw"
    value: str


StoredValue = Annotated[JsonValue | RawValue, Field(discriminator="kind")]
