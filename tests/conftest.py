import asyncio
from collections.abc import Callable

import httpx
import pytest

from mdnotes.host import Document, HostBridge, Prompter
from mdnotes.plugins.base import NotePlugin
from mdnotes.plugins.context import ContextFactory, PluginContext
from mdnotes.plugins.manager import PluginManager
from mdnotes.plugins.models import (
    ContextMenuItem,
    InputBoxOptions,
    ModalOptions,
    NoteInfo,
    PluginManifest,
    QuickPickItem,
    QuickPickOptions,
    ToolbarButton,
)
from mdnotes.plugins.persistence import KeyValuePersistence, MemoryKeyValueStore
from mdnotes.plugins.registry import ContributionRegistry


class ScriptedPrompter(Prompter):
    """Answers prompts from pre-recorded queues; an empty queue means the user cancelled."""

    def __init__(self) -> None:
        self.confirms: list[bool | None] = []
        self.inputs: list[str | None] = []
        self.picks: list[int | None] = []
        self.asked: list[str] = []

    async def confirm(self, options: ModalOptions) -> bool | None:
        self.asked.append(options.title)
        return self.confirms.pop(0) if self.confirms else None

    async def input(self, options: InputBoxOptions) -> str | None:
        self.asked.append(options.title or "")
        return self.inputs.pop(0) if self.inputs else None

    async def pick(
        self, items: list[QuickPickItem], options: QuickPickOptions | None
    ) -> int | None:
        self.asked.append(options.title if options and options.title else "")
        return self.picks.pop(0) if self.picks else None


class RecordingPlugin(NotePlugin):
    """Configurable plugin that records how the manager drives it."""

    def __init__(
        self,
        plugin_id: str = "p1",
        *,
        buttons: tuple[str, ...] = ("run",),
        menu_items: tuple[str, ...] = (),
        activate_error: Exception | None = None,
        deactivate_error: Exception | None = None,
        dependencies: dict[str, str] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.manifest = PluginManifest(
            id=plugin_id,
            name=f"Plugin {plugin_id}",
            version="1.0.0",
            dependencies=dependencies or {},
        )
        self.buttons = buttons
        self.menu_items = menu_items
        self.activate_error = activate_error
        self.deactivate_error = deactivate_error
        self.gate = gate
        self.activate_calls = 0
        self.deactivate_calls = 0
        self.clicks: list[str] = []
        self.contexts: list[PluginContext] = []

    async def activate(self, ctx: PluginContext) -> None:
        self.activate_calls += 1
        self.contexts.append(ctx)

        for button_id in self.buttons:
            ctx.ui.register_toolbar_button(
                ToolbarButton(
                    id=button_id,
                    title=button_id.title(),
                    on_click=lambda button_id=button_id: self.clicks.append(button_id),
                )
            )
        for item_id in self.menu_items:
            ctx.ui.register_context_menu_item(
                ContextMenuItem(
                    id=item_id,
                    label=item_id.title(),
                    on_click=lambda item_id=item_id: self.clicks.append(item_id),
                )
            )

        if self.gate is not None:
            await self.gate.wait()
        if self.activate_error is not None:
            raise self.activate_error

    async def deactivate(self) -> None:
        self.deactivate_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.deactivate_error is not None:
            raise self.deactivate_error


@pytest.fixture
def make_plugin() -> Callable[..., RecordingPlugin]:
    return RecordingPlugin


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()


@pytest.fixture
def document() -> Document:
    return Document(
        "# Groceries\n\nmilk, eggs",
        NoteInfo(id="groceries", title="Groceries", path="notes/groceries.md"),
    )


@pytest.fixture
def http_handler():
    """Default handler for the mocked network; tests replace `responder` as needed."""

    class Handler:
        def __init__(self) -> None:
            self.requests: list[httpx.Request] = []
            self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: (
                httpx.Response(200, json={"ok": True})
            )

        async def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            response = self.responder(request)
            if asyncio.iscoroutine(response):
                response = await response
            return response

    return Handler()


@pytest.fixture
async def host(document, prompter, http_handler):
    client = httpx.AsyncClient(
        base_url="http://notes.test", transport=httpx.MockTransport(http_handler)
    )
    bridge = HostBridge(document, prompter, base_url="http://notes.test", http_client=client)
    yield bridge
    await client.aclose()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def registry() -> ContributionRegistry:
    return ContributionRegistry()


@pytest.fixture
def factory(host, registry, store) -> ContextFactory:
    return ContextFactory(host, registry, store, network_timeout=5.0)


@pytest.fixture
def persistence(store) -> KeyValuePersistence:
    return KeyValuePersistence(store)


@pytest.fixture
def manager(factory, persistence) -> PluginManager:
    return PluginManager(factory, persistence)
