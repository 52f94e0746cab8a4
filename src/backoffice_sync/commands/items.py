"""
Item commands: list, add, edit and delete collection items.

Each call opens a short-lived session, so drafts live only for the duration
of one command: ``edit`` loads the canonical item, applies the field changes
to its draft and commits it.
"""

import asyncio
import logging
from typing import Any, List, Mapping, Optional

from ..core.command_context import CommandContext
from ..core.models import OrderedItem

logger = logging.getLogger(__name__)


def list_items(config_path: str, collection: str) -> List[OrderedItem]:
    """Return the canonical items of *collection* in display order."""

    async def _run(ctx: CommandContext) -> List[OrderedItem]:
        session = ctx.new_session()
        try:
            return await session.collection(collection).load()
        finally:
            session.close()

    with CommandContext(config_path) as ctx:
        return asyncio.run(_run(ctx))


def add(config_path: str, collection: str, fields: Mapping[str, Any]) -> Optional[OrderedItem]:
    """Create an item through the draft validation rules."""

    async def _run(ctx: CommandContext) -> Optional[OrderedItem]:
        session = ctx.new_session()
        try:
            target = session.collection(collection)
            await target.load()
            return await target.create(fields)
        finally:
            session.close()

    with CommandContext(config_path) as ctx:
        item = asyncio.run(_run(ctx))
    if item is not None:
        logger.info(f"Created {collection} item {item.id} at position {item.position}")
    return item


def edit(config_path: str, collection: str, item_id: Any, fields: Mapping[str, Any]) -> Optional[OrderedItem]:
    """Apply *fields* to the draft of *item_id* and commit it.

    Returns the saved item, or None when the changes did not differ from the
    canonical values.

    Raises:
        KeyError: If the item does not exist
        ValidationError: If the edited item breaks a validation rule
        GatewayError: If the backend refuses or fails the update
    """

    async def _run(ctx: CommandContext) -> Optional[OrderedItem]:
        session = ctx.new_session()
        try:
            target = session.collection(collection)
            await target.load()
            if target.find(item_id) is None:
                raise KeyError(f"{collection} item {item_id} not found")
            for name, value in fields.items():
                target.drafts.update(item_id, name, value)
            if not target.drafts.is_dirty(item_id):
                logger.info(f"No changes for {collection} item {item_id}")
                return None
            return await target.commit(item_id)
        finally:
            session.close()

    with CommandContext(config_path) as ctx:
        return asyncio.run(_run(ctx))


def delete(config_path: str, collection: str, item_id: Any) -> bool:
    """Delete *item_id*; returns False when it was not in the collection."""

    async def _run(ctx: CommandContext) -> bool:
        session = ctx.new_session()
        try:
            target = session.collection(collection)
            await target.load()
            return await target.delete(item_id)
        finally:
            session.close()

    with CommandContext(config_path) as ctx:
        return asyncio.run(_run(ctx))
