"""Registry of UI contributions (toolbar buttons, context-menu items) made by plugins."""

import inspect
from collections.abc import Callable
from dataclasses import replace

from mdnotes.exceptions import ContributionConflictError
from mdnotes.logger import get_logger
from mdnotes.plugins.disposable import Disposable
from mdnotes.plugins.models import ContextMenuItem, ToolbarButton

logger = get_logger(__name__)

UIChangeCallback = Callable[[], None]


def qualify(plugin_id: str, local_id: str) -> str:
    """Build the fully-qualified `pluginId:localId` contribution key."""
    return f"{plugin_id}:{local_id}"


class ContributionRegistry:
    """
    Holds every toolbar button and context-menu item keyed by its fully-qualified id.

    Dicts keep insertion order, which is the display order whenever a
    contribution carries no explicit `order`. Sorting by group/order is
    left to whoever renders the contributions.

    """

    def __init__(self) -> None:
        self.toolbar_buttons: dict[str, ToolbarButton] = {}
        self.context_menu_items: dict[str, ContextMenuItem] = {}
        self._observers: list[UIChangeCallback] = []

    def on_change(self, callback: UIChangeCallback) -> Disposable:
        """Subscribe to contribution changes. Dispose the result to unsubscribe."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return Disposable(unsubscribe)

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback()
            except Exception:
                logger.exception("UI change observer failed")

    def _check_free(self, kind: str, full_id: str) -> None:
        # Buttons and menu items share one id space so `get` and `run` are unambiguous
        if full_id in self.toolbar_buttons or full_id in self.context_menu_items:
            raise ContributionConflictError(kind, full_id)

    def add_toolbar_button(self, plugin_id: str, button: ToolbarButton) -> Disposable:
        full_id = qualify(plugin_id, button.id)
        self._check_free("toolbar button", full_id)

        self.toolbar_buttons[full_id] = replace(button, id=full_id)
        logger.debug(f"Registered toolbar button {full_id}")
        self._notify()
        return Disposable(lambda: self._remove(self.toolbar_buttons, full_id))

    def add_context_menu_item(self, plugin_id: str, item: ContextMenuItem) -> Disposable:
        full_id = qualify(plugin_id, item.id)
        self._check_free("context menu item", full_id)

        self.context_menu_items[full_id] = replace(item, id=full_id)
        logger.debug(f"Registered context menu item {full_id}")
        self._notify()
        return Disposable(lambda: self._remove(self.context_menu_items, full_id))

    def _remove(self, mapping: dict, full_id: str) -> None:
        if mapping.pop(full_id, None) is not None:
            logger.debug(f"Removed contribution {full_id}")
            self._notify()

    def for_plugin(self, plugin_id: str) -> set[str]:
        """Return every fully-qualified id currently contributed by `plugin_id`."""
        prefix = qualify(plugin_id, "")
        return {
            full_id
            for full_id in [*self.toolbar_buttons, *self.context_menu_items]
            if full_id.startswith(prefix)
        }

    def visible_context_menu_items(self) -> list[ContextMenuItem]:
        """Evaluate `when` predicates now and return the items that should show."""
        visible = []
        for item in self.context_menu_items.values():
            if item.when is None:
                visible.append(item)
                continue
            try:
                if item.when():
                    visible.append(item)
            except Exception:
                logger.exception(f"Predicate for {item.id} failed, hiding the item")
        return visible

    def get(self, full_id: str) -> ToolbarButton | ContextMenuItem | None:
        return self.toolbar_buttons.get(full_id) or self.context_menu_items.get(full_id)

    async def run(self, full_id: str) -> bool:
        """
        Invoke the action of a contribution, awaiting it if it is a coroutine.

        Errors raised by plugin code are logged and contained. Returns True
        when the action completed.
        """
        contribution = self.get(full_id)
        if contribution is None:
            logger.warning(f"No contribution registered with id {full_id}")
            return False

        try:
            result = contribution.on_click()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Action for {full_id} failed")
            return False
        return True
