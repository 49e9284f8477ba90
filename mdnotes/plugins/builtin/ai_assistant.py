"""AI writing assistant: continue, translate and grammar-check the open note."""

import re
from typing import Literal

from pydantic import BaseModel

from mdnotes.plugins.base import NotePlugin
from mdnotes.plugins.context import PluginContext
from mdnotes.plugins.models import (
    Cancelled,
    ContextMenuItem,
    FetchOptions,
    PluginManifest,
    QuickPickItem,
    QuickPickOptions,
    ToolbarButton,
)

AIAction = Literal["complete", "translate", "grammar"]

CJK_PATTERN = re.compile(r"[一-龥]")

TARGET_LANGUAGES = [
    QuickPickItem(label="Translate to English", description="en"),
    QuickPickItem(label="Translate to Chinese", description="zh"),
]

REQUEST_FINISHED = "request-finished"


class AIResponse(BaseModel):
    success: bool
    result: str | None = None
    error: str | None = None


class AIAssistantPlugin(NotePlugin):
    """
    Sends the note, or the selected text, to the host's AI endpoint and
    writes the answer back into the editor.

    The last chosen target language and per-action usage counts are kept
    in plugin storage.

    """

    manifest = PluginManifest(
        id="ai-assistant",
        name="AI Writing Assistant",
        version="1.0.0",
        description="Continue, translate and grammar-check notes with AI",
        author="mdnotes",
        icon="✨",
        keywords=["AI", "writing", "translate", "grammar"],
    )

    request_timeout = 60.0

    def __init__(self) -> None:
        self._ctx: PluginContext | None = None
        self.stale = False

    @property
    def ctx(self) -> PluginContext:
        if self._ctx is None:
            raise RuntimeError("AI assistant is not active")
        return self._ctx

    async def activate(self, ctx: PluginContext) -> None:
        self._ctx = ctx
        self.stale = False

        ctx.ui.register_toolbar_button(
            ToolbarButton(
                id="ai-complete",
                icon="Sparkles",
                title="AI Continue",
                on_click=self.complete,
                group="ai",
                order=1,
            )
        )
        ctx.ui.register_toolbar_button(
            ToolbarButton(
                id="ai-translate",
                icon="Languages",
                title="Translate",
                on_click=self.translate,
                group="ai",
                order=2,
            )
        )
        ctx.ui.register_toolbar_button(
            ToolbarButton(
                id="ai-grammar",
                icon="SpellCheck",
                title="Grammar Check",
                on_click=self.grammar,
                group="ai",
                order=3,
            )
        )
        ctx.ui.register_context_menu_item(
            ContextMenuItem(
                id="ai-translate-selection",
                label="Translate Selection",
                on_click=self.translate_selection,
                group="ai",
                when=self.has_selection,
            )
        )
        ctx.ui.register_context_menu_item(
            ContextMenuItem(
                id="ai-improve-selection",
                label="Improve Selection",
                on_click=self.improve_selection,
                group="ai",
                when=self.has_selection,
            )
        )

        ctx.editor.on_content_change(self._mark_stale)
        ctx.events.on(REQUEST_FINISHED, self._on_request_finished)
        ctx.log.info("AI writing assistant activated")

    def deactivate(self) -> None:
        if self._ctx is not None:
            self._ctx.log.info("AI writing assistant deactivated")
        self._ctx = None

    def has_selection(self) -> bool:
        selection = self.ctx.editor.get_selection()
        return selection is not None and len(selection.text) > 0

    def _mark_stale(self, content: str) -> None:
        self.stale = True

    def _on_request_finished(self, data: dict) -> None:
        self.ctx.log.debug(f"AI request finished: {data}")

    async def _record_usage(self, action: AIAction) -> None:
        usage = await self.ctx.storage.get_value("usage", {})
        if not isinstance(usage, dict):
            usage = {}
        usage[action] = usage.get(action, 0) + 1
        await self.ctx.storage.set("usage", usage)

    async def call_ai(
        self, action: AIAction, text: str, target_lang: str | None = None
    ) -> AIResponse:
        """POST the text to the host AI endpoint. Failures come back as an unsuccessful response."""
        ctx = self.ctx
        try:
            response = await ctx.network.fetch(
                f"/api/ai/{action}",
                FetchOptions(
                    method="POST",
                    headers={"Content-Type": "application/json"},
                    body={"text": text, "action": action, "targetLang": target_lang},
                    timeout=self.request_timeout,
                ),
            )
            if not response.ok:
                answer = AIResponse(success=False, error=f"Request failed: {response.status}")
            else:
                answer = AIResponse.model_validate(response.json())
        except ValueError as e:
            # Malformed JSON or a body that does not match AIResponse
            answer = AIResponse(success=False, error=f"Invalid response from AI service: {e}")
        except Exception as e:
            message = str(e) or type(e).__name__
            if not ctx.network.is_online():
                message = f"Network unavailable: {message}"
            answer = AIResponse(success=False, error=message)

        await self._record_usage(action)
        ctx.events.emit(REQUEST_FINISHED, {"action": action, "success": answer.success})
        return answer

    def _require_content(self) -> str | None:
        content = self.ctx.editor.get_content()
        if not content.strip():
            self.ctx.ui.show_notification("Write something first", "warning")
            return None
        return content

    async def _rewrite_document(
        self, action: AIAction, progress: str, done: str, target_lang: str | None = None
    ) -> None:
        content = self._require_content()
        if content is None:
            return

        self.ctx.ui.show_notification(progress, "info")
        response = await self.call_ai(action, content, target_lang)
        if response.success and response.result:
            self.ctx.editor.set_content(response.result)
            self.stale = False
            self.ctx.ui.show_notification(done, "success")
        else:
            self.ctx.ui.show_notification(response.error or f"{action} failed", "error")

    async def _rewrite_selection(
        self, action: AIAction, progress: str, done: str, target_lang: str | None = None
    ) -> None:
        selection = self.ctx.editor.get_selection()
        if selection is None or not selection.text.strip():
            self.ctx.ui.show_notification("Select some text first", "warning")
            return

        self.ctx.ui.show_notification(progress, "info")
        response = await self.call_ai(action, selection.text, target_lang)
        if response.success and response.result:
            self.ctx.editor.replace_selection(response.result)
            self.ctx.ui.show_notification(done, "success")
        else:
            self.ctx.ui.show_notification(response.error or f"{action} failed", "error")

    async def complete(self) -> None:
        await self._rewrite_document("complete", "Generating continuation...", "Continuation added")

    async def grammar(self) -> None:
        await self._rewrite_document("grammar", "Checking grammar...", "Grammar check finished")

    async def translate(self) -> None:
        if self._require_content() is None:
            return

        # Offer the last used language first
        last_lang = await self.ctx.storage.get_value("target_lang")
        items = sorted(TARGET_LANGUAGES, key=lambda item: item.description != last_lang)

        choice = await self.ctx.ui.show_quick_pick(
            items, QuickPickOptions(title="Choose the target language")
        )
        if isinstance(choice, Cancelled):
            return

        target_lang = choice.value.description
        await self.ctx.storage.set("target_lang", target_lang)
        await self._rewrite_document("translate", "Translating...", "Translation finished", target_lang)

    async def translate_selection(self) -> None:
        selection = self.ctx.editor.get_selection()
        text = selection.text if selection else ""
        target_lang = "en" if CJK_PATTERN.search(text) else "zh"
        await self._rewrite_selection(
            "translate", "Translating selection...", "Translation finished", target_lang
        )

    async def improve_selection(self) -> None:
        await self._rewrite_selection("grammar", "Improving selection...", "Selection improved")
