"""Command-line entry point for backoffice-sync."""

from __future__ import annotations

import logging
import sys

import click

from .commands import items as items_cmd
from .commands import reorder as reorder_cmd
from .commands import unread as unread_cmd
from .core.command_utils import parse_assignments, parse_item_id
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.errors import SyncError

# Setup logging early so submodules inherit sane defaults
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def _format_item(item) -> str:
    fields = ", ".join(f"{k}={v!r}" for k, v in item.fields.items())
    return f"#{item.id:<4} pos={item.position:<3} created={item.created_at}  {fields}"


@click.group()
@click.option(
    "--config",
    default=str(DEFAULT_CONFIG_PATH),
    show_default=True,
    help="Path to config file (defaults to data_dir/config/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: str, verbose: bool) -> None:
    """backoffice-sync - ordered collections, drafts and unread counts for an admin back office."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@cli.command("list")
@click.argument("collection")
@click.pass_context
def list_items(ctx: click.Context, collection: str) -> None:
    """List the items of COLLECTION in display order."""
    try:
        items = items_cmd.list_items(ctx.obj["config_path"], collection)
        if not items:
            click.echo(f"No {collection} yet.")
        for item in items:
            click.echo(_format_item(item))
    except (SyncError, KeyError, ValueError) as exc:
        click.echo(f"❌ Listing {collection} failed: {exc}", err=True)
        sys.exit(1)


@cli.command("add")
@click.argument("collection")
@click.option("--set", "assignments", multiple=True, help="field=value (repeatable)")
@click.pass_context
def add(ctx: click.Context, collection: str, assignments: tuple[str, ...]) -> None:
    """Create an item in COLLECTION."""
    try:
        item = items_cmd.add(ctx.obj["config_path"], collection, parse_assignments(assignments))
        if item is not None:
            click.echo(f"✅ Created {collection} item #{item.id}")
    except (SyncError, KeyError, ValueError) as exc:
        click.echo(f"❌ Create failed: {exc}", err=True)
        sys.exit(1)


@cli.command("edit")
@click.argument("collection")
@click.argument("item_id")
@click.option("--set", "assignments", multiple=True, help="field=value (repeatable)")
@click.pass_context
def edit(ctx: click.Context, collection: str, item_id: str, assignments: tuple[str, ...]) -> None:
    """Edit ITEM_ID of COLLECTION and save it."""
    try:
        item = items_cmd.edit(
            ctx.obj["config_path"], collection, parse_item_id(item_id), parse_assignments(assignments)
        )
        if item is None:
            click.echo("No changes to save")
        else:
            click.echo(f"✅ Saved {collection} item #{item.id}")
    except (SyncError, KeyError, ValueError) as exc:
        click.echo(f"❌ Save failed: {exc}", err=True)
        sys.exit(1)


@cli.command("delete")
@click.argument("collection")
@click.argument("item_id")
@click.pass_context
def delete(ctx: click.Context, collection: str, item_id: str) -> None:
    """Delete ITEM_ID from COLLECTION."""
    try:
        if items_cmd.delete(ctx.obj["config_path"], collection, parse_item_id(item_id)):
            click.echo(f"✅ Deleted {collection} item #{item_id}")
        else:
            click.echo(f"{collection} item #{item_id} not found")
    except (SyncError, KeyError) as exc:
        click.echo(f"❌ Delete failed: {exc}", err=True)
        sys.exit(1)


@cli.command("move")
@click.argument("collection")
@click.argument("source_id")
@click.argument("target_id")
@click.pass_context
def move(ctx: click.Context, collection: str, source_id: str, target_id: str) -> None:
    """Drag SOURCE_ID onto TARGET_ID within COLLECTION and save the order."""
    try:
        items = reorder_cmd.run(
            ctx.obj["config_path"], collection, parse_item_id(source_id), parse_item_id(target_id)
        )
        click.echo("✅ Order saved")
        for item in items:
            click.echo(_format_item(item))
    except (SyncError, KeyError, ValueError) as exc:
        click.echo(f"❌ Reorder failed: {exc}", err=True)
        sys.exit(1)


@cli.command("unread")
@click.pass_context
def unread(ctx: click.Context) -> None:
    """Show how many records each feed gained since it was last viewed."""
    try:
        for feed, count in unread_cmd.counts(ctx.obj["config_path"]).items():
            click.echo(f"{feed:<16} {count}")
    except (SyncError, ValueError) as exc:
        click.echo(f"❌ Error computing unread counts: {exc}", err=True)
        sys.exit(1)


@cli.command("seen")
@click.argument("feed")
@click.pass_context
def seen(ctx: click.Context, feed: str) -> None:
    """Mark everything currently in FEED as seen."""
    try:
        marker = unread_cmd.mark_seen(ctx.obj["config_path"], feed)
        click.echo(f"✅ {feed} seen up to {marker}")
    except (SyncError, KeyError, ValueError) as exc:
        click.echo(f"❌ Error marking {feed} as seen: {exc}", err=True)
        sys.exit(1)


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show system status and configuration."""
    try:
        config_manager = ConfigManager(ctx.obj["config_path"])
        click.echo(f"📄 Config file: {config_manager.config_path}")

        if config_manager.validate_config():
            click.echo("✅ Configuration is valid")
        else:
            click.echo("❌ Configuration validation failed")
            return

        schemas = config_manager.get_schemas()
        click.echo(f"📚 Collections: {', '.join(schemas)}")
        reorderable = [name for name, schema in schemas.items() if schema.reorderable]
        click.echo(f"↕️  Reorderable: {', '.join(reorderable) or '-'} ({config_manager.get_reorder_mode().value} save)")
        click.echo(f"🔔 Feeds: {', '.join(config_manager.get_feeds())}")

        gateway = config_manager.get_gateway_config()
        click.echo(f"🔌 Gateway: {gateway['kind']}")
        db_config = config_manager.load_config()["database"]
        click.echo("🗄️  Database paths:")
        click.echo(f"   Collections: {db_config['path']}")
        click.echo(f"   Session state: {db_config['state_path']}")

    except Exception as exc:  # pragma: no cover - click echoes the message
        click.echo(f"❌ Error checking status: {exc}", err=True)


if __name__ == "__main__":  # pragma: no cover - script entry
    cli()
