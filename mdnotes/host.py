"""
Host application bridge: the document buffer, notifications, user prompts and the
raw network primitive that plugin capabilities are built on.

"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx
from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt

from mdnotes.logger import get_logger
from mdnotes.plugins.disposable import Disposable
from mdnotes.plugins.models import (
    EditorSelection,
    FetchResponse,
    InputBoxOptions,
    ModalOptions,
    NoteInfo,
    Notification,
    NotificationType,
    QuickPickItem,
    QuickPickOptions,
)

logger = get_logger(__name__)

ContentListener = Callable[[str], None]
NotificationListener = Callable[[Notification], None]


class Document:
    """
    The editable buffer of the currently open note.

    Listeners are called on every write, including writes that leave the
    content unchanged, the same way a UI store notifies on each update.

    """

    def __init__(self, content: str = "", note: NoteInfo | None = None) -> None:
        self._content = content
        self._selection: tuple[int, int] | None = None
        self.current_note = note
        self._listeners: list[ContentListener] = []

    @property
    def content(self) -> str:
        return self._content

    def set_content(self, content: str) -> None:
        self._content = content
        if self._selection is not None and self._selection[1] > len(content):
            self._selection = None
        for listener in list(self._listeners):
            try:
                listener(content)
            except Exception:
                logger.exception("Document listener failed")

    def select(self, start: int, end: int) -> None:
        if not 0 <= start <= end <= len(self._content):
            raise ValueError(
                f"Selection {start}:{end} is outside of the document (length {len(self._content)})"
            )
        self._selection = (start, end)

    def clear_selection(self) -> None:
        self._selection = None

    @property
    def selection(self) -> EditorSelection | None:
        if self._selection is None:
            return None
        start, end = self._selection
        return EditorSelection(start=start, end=end, text=self._content[start:end])

    def subscribe(self, listener: ContentListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class Prompter(ABC):
    """
    Asks the user for input. Every method returns None when the user cancels.
    """

    @abstractmethod
    async def confirm(self, options: ModalOptions) -> bool | None:
        pass

    @abstractmethod
    async def input(self, options: InputBoxOptions) -> str | None:
        pass

    @abstractmethod
    async def pick(
        self, items: list[QuickPickItem], options: QuickPickOptions | None
    ) -> int | None:
        """Return the index of the chosen item."""
        pass


class NullPrompter(Prompter):
    """Prompter for headless hosts; every prompt is cancelled."""

    async def confirm(self, options: ModalOptions) -> bool | None:
        return None

    async def input(self, options: InputBoxOptions) -> str | None:
        return None

    async def pick(
        self, items: list[QuickPickItem], options: QuickPickOptions | None
    ) -> int | None:
        return None


class ConsolePrompter(Prompter):
    """Terminal prompts built on rich. Ctrl-C or Ctrl-D cancels."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def _ask(self, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except (EOFError, KeyboardInterrupt):
            return None

    async def confirm(self, options: ModalOptions) -> bool | None:
        def ask() -> bool:
            self.console.print(f"[bold]{options.title}[/bold]")
            if options.content:
                self.console.print(options.content)
            return Confirm.ask(options.confirm_text, console=self.console)

        answer = await self._ask(ask)
        if answer is None:
            return None
        # Without a cancel button any answer acknowledges the modal
        if not options.show_cancel:
            return True
        return True if answer else None

    async def input(self, options: InputBoxOptions) -> str | None:
        return await self._ask(
            lambda: Prompt.ask(
                options.title or options.placeholder or "Value",
                default=options.value,
                console=self.console,
            )
        )

    async def pick(
        self, items: list[QuickPickItem], options: QuickPickOptions | None
    ) -> int | None:
        def ask() -> int:
            title = options.title if options and options.title else "Choose an option"
            self.console.print(f"[bold]{title}[/bold]")
            for index, item in enumerate(items, start=1):
                suffix = f" [dim]{item.description}[/dim]" if item.description else ""
                self.console.print(f"  {index}. {item.label}{suffix}")
            return IntPrompt.ask("Number (0 to cancel)", default=1, console=self.console)

        choice = await self._ask(ask)
        if choice is None or not 1 <= choice <= len(items):
            return None
        return choice - 1


class HostBridge:
    """Everything the plugin capabilities need from the running application."""

    def __init__(
        self,
        document: Document | None = None,
        prompter: Prompter | None = None,
        *,
        base_url: str = "http://127.0.0.1:8080",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.document = document or Document()
        self.prompter = prompter or NullPrompter()
        self.base_url = base_url
        self.notifications: list[Notification] = []
        self._notification_listeners: list[NotificationListener] = []
        self._http_client = http_client
        self._owns_client = http_client is None
        self._online = True

    def notify(
        self,
        message: str,
        type: NotificationType = NotificationType.INFO,
        source: str | None = None,
    ) -> Notification:
        notification = Notification(message=message, type=type, source=source)
        self.notifications.append(notification)
        logger.info(f"[{type.value}] {message}")
        for listener in list(self._notification_listeners):
            listener(notification)
        return notification

    def on_notification(self, listener: NotificationListener) -> Disposable:
        self._notification_listeners.append(listener)
        return Disposable(lambda: self._notification_listeners.remove(listener))

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            # Timeouts are enforced per request by the network capability
            self._http_client = httpx.AsyncClient(base_url=self.base_url, timeout=None)
        return self._http_client

    async def fetch(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | dict | list | None = None,
    ) -> FetchResponse:
        request_kwargs: dict[str, Any] = {"headers": headers or {}}
        if isinstance(body, str):
            request_kwargs["content"] = body
        elif body is not None:
            request_kwargs["json"] = body

        try:
            response = await self.http_client.request(method, url, **request_kwargs)
        except httpx.TransportError:
            self._online = False
            raise

        self._online = True
        return FetchResponse(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            content=response.text,
        )

    def is_online(self) -> bool:
        """Whether the last request reached the network."""
        return self._online

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None
