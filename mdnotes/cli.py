"""Click CLI for managing mdnotes plugins."""

import asyncio
import math
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from mdnotes.config import NotesConfig
from mdnotes.exceptions import PluginError
from mdnotes.host import ConsolePrompter, Document, HostBridge
from mdnotes.plugins.builtin import register_builtin_plugins
from mdnotes.plugins.catalog import PluginCatalog
from mdnotes.plugins.manager import PluginManager
from mdnotes.plugins.models import (
    ContextMenuItem,
    NoteInfo,
    Notification,
    NotificationType,
    PluginState,
    ToolbarButton,
)

console = Console()

NOTIFICATION_STYLES = {
    NotificationType.INFO: "blue",
    NotificationType.SUCCESS: "green",
    NotificationType.WARNING: "yellow",
    NotificationType.ERROR: "red",
}

STATE_STYLES = {
    PluginState.ACTIVE: "green",
    PluginState.ERROR: "red",
    PluginState.INACTIVE: "dim",
}


def _load_document(note: Path | None) -> Document:
    if note is None or not note.exists():
        return Document()

    content = note.read_text(encoding="utf-8")
    title = note.stem
    for line in content.splitlines():
        if line.startswith("#"):
            title = line.lstrip("#").strip() or title
            break
    return Document(content, NoteInfo(id=note.stem, title=title, path=str(note)))


def _print_notification(notification: Notification) -> None:
    style = NOTIFICATION_STYLES[notification.type]
    source = f"[dim]{notification.source}[/dim] " if notification.source else ""
    console.print(f"{source}[{style}]{notification.message}[/{style}]")


@asynccontextmanager
async def _runtime(ctx: click.Context) -> AsyncIterator[PluginManager]:
    """Start the plugin runtime the way the app does at launch, and stop it afterwards."""
    config: NotesConfig = ctx.obj["config"]
    config.ensure_data_dir()

    host = HostBridge(
        _load_document(ctx.obj["note"]),
        ConsolePrompter(console),
        base_url=config.api_base_url,
    )
    host.on_notification(_print_notification)

    manager = PluginManager.from_config(config, host)
    register_builtin_plugins(manager)
    manager.load()
    await manager.activate_enabled()
    try:
        yield manager
    finally:
        await manager.shutdown()
        await host.aclose()


def _sort_key(index: int, contribution: ToolbarButton | ContextMenuItem) -> tuple:
    order = contribution.order if contribution.order is not None else math.inf
    return (contribution.group or "", order, index)


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file",
)
@click.option(
    "--note",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Markdown note opened in the editor while plugins run",
)
@click.pass_context
def main(ctx: click.Context, config_file: Path | None, note: Path | None):
    """Manage mdnotes plugins."""
    ctx.obj = {"config": NotesConfig(config_file=config_file), "note": note}


@main.command("list")
@click.pass_context
def list_plugins(ctx: click.Context):
    """Show installed plugins."""

    async def _list() -> None:
        async with _runtime(ctx) as manager:
            records = manager.list_installed()
            if not records:
                console.print("[yellow]No plugins installed.[/yellow]")
                return

            table = Table(title="Installed Plugins")
            table.add_column("Id", style="cyan")
            table.add_column("Name")
            table.add_column("Version")
            table.add_column("Enabled")
            table.add_column("State")
            table.add_column("Error", style="red")

            for record in records:
                style = STATE_STYLES.get(record.state, "yellow")
                table.add_row(
                    record.id,
                    record.manifest.name,
                    record.manifest.version,
                    "✓" if record.enabled else "✗",
                    f"[{style}]{record.state.value}[/{style}]",
                    record.error or "",
                )
            console.print(table)

    asyncio.run(_list())


@main.command()
@click.argument("query", default="")
@click.pass_context
def search(ctx: click.Context, query: str):
    """Search the plugin market."""

    async def _search() -> None:
        async with _runtime(ctx) as manager:
            catalog = PluginCatalog()
            entries = catalog.annotate(manager, catalog.search(query))
            if not entries:
                console.print(f"[yellow]No plugins match '{query}'.[/yellow]")
                return

            table = Table(title="Plugin Market")
            table.add_column("Id", style="cyan")
            table.add_column("Name")
            table.add_column("Description")
            table.add_column("Downloads", justify="right")
            table.add_column("Rating", justify="right")
            table.add_column("Installed")

            for entry in entries:
                table.add_row(
                    entry.id,
                    f"{entry.icon or ''} {entry.name}".strip(),
                    entry.description,
                    str(entry.downloads),
                    f"{entry.rating:.1f}",
                    entry.installed_version or "",
                )
            console.print(table)

    asyncio.run(_search())


@main.command()
@click.argument("plugin_id")
@click.pass_context
def install(ctx: click.Context, plugin_id: str):
    """Install and activate a built-in plugin."""

    async def _install() -> None:
        async with _runtime(ctx) as manager:
            plugin = manager.package(plugin_id)
            if plugin is None:
                console.print(f"[red]No plugin package named '{plugin_id}' is available.[/red]")
                sys.exit(1)

            result = await manager.install(plugin)
            _report(manager, plugin_id, "Installed", result.value)

    _run_guarded(_install)


@main.command()
@click.argument("plugin_id")
@click.pass_context
def uninstall(ctx: click.Context, plugin_id: str):
    """Deactivate and remove a plugin."""

    async def _uninstall() -> None:
        async with _runtime(ctx) as manager:
            await manager.uninstall(plugin_id)
            console.print(f"[green]Uninstalled {plugin_id}[/green]")

    _run_guarded(_uninstall)


@main.command()
@click.argument("plugin_id")
@click.pass_context
def enable(ctx: click.Context, plugin_id: str):
    """Enable and activate a plugin, retrying one that failed."""

    async def _enable() -> None:
        async with _runtime(ctx) as manager:
            result = await manager.enable(plugin_id)
            _report(manager, plugin_id, "Enabled", result.value)

    _run_guarded(_enable)


@main.command()
@click.argument("plugin_id")
@click.pass_context
def disable(ctx: click.Context, plugin_id: str):
    """Deactivate a plugin and keep it off across restarts."""

    async def _disable() -> None:
        async with _runtime(ctx) as manager:
            result = await manager.disable(plugin_id)
            _report(manager, plugin_id, "Disabled", result.value)

    _run_guarded(_disable)


@main.command()
@click.pass_context
def contributions(ctx: click.Context):
    """List toolbar buttons and context-menu items contributed by active plugins."""

    async def _contributions() -> None:
        async with _runtime(ctx) as manager:
            registry = manager.registry
            visible = {item.id for item in registry.visible_context_menu_items()}

            table = Table(title="Contributions")
            table.add_column("Id", style="cyan")
            table.add_column("Kind")
            table.add_column("Title")
            table.add_column("Group")
            table.add_column("Visible")

            buttons = sorted(
                enumerate(registry.toolbar_buttons.values()),
                key=lambda pair: _sort_key(*pair),
            )
            for _, button in buttons:
                table.add_row(button.id, "toolbar", button.title, button.group or "", "✓")

            items = sorted(
                enumerate(registry.context_menu_items.values()),
                key=lambda pair: _sort_key(*pair),
            )
            for _, item in items:
                table.add_row(
                    item.id,
                    "context menu",
                    item.label,
                    item.group or "",
                    "✓" if item.id in visible else "✗",
                )
            console.print(table)

    asyncio.run(_contributions())


@main.command()
@click.argument("contribution_id")
@click.pass_context
def run(ctx: click.Context, contribution_id: str):
    """Run a contribution's action against the --note file."""
    note: Path | None = ctx.obj["note"]

    async def _run() -> None:
        async with _runtime(ctx) as manager:
            host = manager.factory.host
            before = host.document.content

            if not await manager.registry.run(contribution_id):
                console.print(f"[red]Action {contribution_id} did not complete[/red]")
                sys.exit(1)

            if note is not None and host.document.content != before:
                note.write_text(host.document.content, encoding="utf-8")
                console.print(f"[green]Updated {note}[/green]")

    asyncio.run(_run())


def _report(manager: PluginManager, plugin_id: str, verb: str, outcome: str) -> None:
    record = manager.get(plugin_id)
    state = record.state.value if record else "unknown"
    console.print(f"{verb} [cyan]{plugin_id}[/cyan]: {outcome} (state: {state})")
    if record and record.error:
        console.print(f"[red]{record.error}[/red]")


def _run_guarded(factory) -> None:
    """Run a command coroutine, turning manager misuse into a clean error exit."""
    try:
        asyncio.run(factory())
    except PluginError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
