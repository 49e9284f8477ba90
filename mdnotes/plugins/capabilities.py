"""
Capabilities handed to a plugin through its context.

Each capability is a narrow facade over the host bridge. Anything a plugin
registers through them is tracked in the plugin's disposable set, and every
storage key and event name is prefixed with the plugin id.

"""

import asyncio
import json
import logging
from collections.abc import Callable, MutableMapping
from typing import TYPE_CHECKING, Any, TypeVar

from mdnotes.exceptions import ContextRevokedError, NetworkTimeoutError
from mdnotes.logger import get_logger
from mdnotes.plugins.disposable import Disposable, DisposableSet
from mdnotes.plugins.events import EventBus
from mdnotes.plugins.models import (
    Cancelled,
    Confirmed,
    ContextMenuItem,
    EditorSelection,
    FetchOptions,
    FetchResponse,
    InputBoxOptions,
    JsonValue,
    ModalOptions,
    NoteInfo,
    NotificationType,
    PromptResult,
    QuickPickItem,
    QuickPickOptions,
    RawValue,
    StoredValue,
    ToolbarButton,
)
from mdnotes.plugins.persistence import KeyValueStore
from mdnotes.plugins.registry import ContributionRegistry

if TYPE_CHECKING:
    from mdnotes.host import Document, HostBridge

ItemT = TypeVar("ItemT", bound=QuickPickItem)


class CapabilityScope:
    """Ownership shared by all capabilities of one plugin activation."""

    def __init__(self, plugin_id: str, disposables: DisposableSet) -> None:
        self.plugin_id = plugin_id
        self.disposables = disposables
        self.revoked = False

    def ensure_active(self) -> None:
        if self.revoked:
            raise ContextRevokedError(self.plugin_id)

    def track(self, disposable: Disposable) -> Disposable:
        self.disposables.add(disposable)
        return disposable


class EditorCapability:
    def __init__(self, scope: CapabilityScope, document: "Document") -> None:
        self._scope = scope
        self._document = document

    def get_content(self) -> str:
        self._scope.ensure_active()
        return self._document.content

    def set_content(self, content: str) -> None:
        self._scope.ensure_active()
        self._document.set_content(content)

    def insert_text(self, text: str) -> None:
        """Append `text` at the end of the document."""
        self.set_content(self.get_content() + text)

    def get_selection(self) -> EditorSelection | None:
        """Return the current selection, or None when nothing is selected."""
        self._scope.ensure_active()
        return self._document.selection

    def replace_selection(self, text: str) -> None:
        selection = self.get_selection()
        if selection is None:
            self.insert_text(text)
            return
        content = self.get_content()
        self.set_content(content[: selection.start] + text + content[selection.end :])

    def get_current_note(self) -> NoteInfo | None:
        self._scope.ensure_active()
        return self._document.current_note

    def on_content_change(self, callback: Callable[[str], None]) -> Disposable:
        """Call `callback` whenever the document content actually changes."""
        self._scope.ensure_active()
        previous = self._document.content

        def listener(content: str) -> None:
            nonlocal previous
            if content != previous:
                previous = content
                callback(content)

        return self._scope.track(Disposable(self._document.subscribe(listener)))


class UICapability:
    def __init__(
        self,
        scope: CapabilityScope,
        host: "HostBridge",
        registry: ContributionRegistry,
    ) -> None:
        self._scope = scope
        self._host = host
        self._registry = registry

    def register_toolbar_button(self, button: ToolbarButton) -> Disposable:
        self._scope.ensure_active()
        return self._scope.track(
            self._registry.add_toolbar_button(self._scope.plugin_id, button)
        )

    def register_context_menu_item(self, item: ContextMenuItem) -> Disposable:
        self._scope.ensure_active()
        return self._scope.track(
            self._registry.add_context_menu_item(self._scope.plugin_id, item)
        )

    def show_notification(
        self, message: str, type: NotificationType | str = NotificationType.INFO
    ) -> None:
        self._scope.ensure_active()
        self._host.notify(message, NotificationType(type), source=self._scope.plugin_id)

    async def show_modal(self, options: ModalOptions) -> PromptResult[bool]:
        self._scope.ensure_active()
        if await self._host.prompter.confirm(options):
            return Confirmed(True)
        return Cancelled()

    async def show_input_box(self, options: InputBoxOptions) -> PromptResult[str]:
        """
        Ask for free text. A value rejected by `options.validate_input` is
        reported as an error notification and the prompt counts as cancelled.
        """
        self._scope.ensure_active()
        value = await self._host.prompter.input(options)
        if value is None:
            return Cancelled()

        if options.validate_input is not None:
            error = options.validate_input(value)
            if error:
                self.show_notification(error, NotificationType.ERROR)
                return Cancelled()

        return Confirmed(value)

    async def show_quick_pick(
        self, items: list[ItemT], options: QuickPickOptions | None = None
    ) -> PromptResult[ItemT]:
        self._scope.ensure_active()
        if not items:
            return Cancelled()

        index = await self._host.prompter.pick(items, options)
        if index is None or not 0 <= index < len(items):
            return Cancelled()
        return Confirmed(items[index])


class StorageCapability:
    """Plugin-private key-value storage. Values are stored JSON encoded."""

    def __init__(self, scope: CapabilityScope, store: KeyValueStore) -> None:
        self._scope = scope
        self._store = store
        self._prefix = f"plugin:{scope.plugin_id}:"

    async def get(self, key: str) -> StoredValue | None:
        """
        Return the stored value, or None when the key is missing. Values that
        do not decode as JSON come back as `RawValue` holding the original text.
        """
        self._scope.ensure_active()
        raw = self._store.get_item(self._prefix + key)
        if raw is None:
            return None
        try:
            return JsonValue(value=json.loads(raw))
        except json.JSONDecodeError:
            return RawValue(value=raw)

    async def get_value(self, key: str, default: Any = None) -> Any:
        stored = await self.get(key)
        return default if stored is None else stored.value

    async def set(self, key: str, value: Any) -> None:
        self._scope.ensure_active()
        self._store.set_item(self._prefix + key, json.dumps(value))

    async def delete(self, key: str) -> None:
        self._scope.ensure_active()
        self._store.remove_item(self._prefix + key)

    async def keys(self) -> list[str]:
        self._scope.ensure_active()
        return [
            key[len(self._prefix) :]
            for key in self._store.keys()
            if key.startswith(self._prefix)
        ]


class NetworkCapability:
    def __init__(
        self, scope: CapabilityScope, host: "HostBridge", default_timeout: float
    ) -> None:
        self._scope = scope
        self._host = host
        self._default_timeout = default_timeout

    async def fetch(self, url: str, options: FetchOptions | None = None) -> FetchResponse:
        """
        Send a request through the host. When the timeout elapses the
        in-flight request is cancelled and `NetworkTimeoutError` is raised.
        """
        self._scope.ensure_active()
        options = options or FetchOptions()
        timeout = options.timeout if options.timeout is not None else self._default_timeout

        try:
            return await asyncio.wait_for(
                self._host.fetch(options.method, url, options.headers, options.body),
                timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(url, timeout) from e

    def is_online(self) -> bool:
        return self._host.is_online()


class EventsCapability:
    """Private event channel; names are namespaced by plugin id."""

    def __init__(self, scope: CapabilityScope, bus: EventBus) -> None:
        self._scope = scope
        self._bus = bus

    def _qualify(self, event: str) -> str:
        return f"{self._scope.plugin_id}:{event}"

    def on(self, event: str, handler: Callable[[Any], None]) -> Disposable:
        self._scope.ensure_active()
        return self._scope.track(self._bus.subscribe(self._qualify(event), handler))

    def emit(self, event: str, data: Any = None) -> None:
        self._scope.ensure_active()
        self._bus.emit(self._qualify(event), data)


class PluginLogger(logging.LoggerAdapter):
    """Logger tagging every record with the plugin it came from."""

    def __init__(self, plugin_id: str) -> None:
        super().__init__(get_logger(f"mdnotes.plugins.{plugin_id}"), {"plugin_id": plugin_id})
        self.plugin_id = plugin_id

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[{self.plugin_id}] {msg}", kwargs

    def warn(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.warning(msg, *args, **kwargs)
