"""
Unread commands: report "new since last look" counts and record read receipts.
"""

import asyncio
import logging
from typing import Dict, Optional

from ..core.command_context import CommandContext

logger = logging.getLogger(__name__)


def counts(config_path: str) -> Dict[str, int]:
    """Unread count per configured feed.

    The first call for a feed initializes its marker to now, so everything
    already present counts as seen.
    """

    async def _run(ctx: CommandContext) -> Dict[str, int]:
        session = ctx.new_session()
        try:
            failures = await session.open()
            for collection, error in failures.items():
                if error:
                    logger.warning(f"Could not load {collection}: {error}")
            return session.unread_counts()
        finally:
            session.close()

    with CommandContext(config_path) as ctx:
        return asyncio.run(_run(ctx))


def mark_seen(config_path: str, feed: str) -> Optional[str]:
    """Select *feed* and mark everything currently in it as seen; returns the new marker."""

    async def _run(ctx: CommandContext) -> Optional[str]:
        session = ctx.new_session()
        try:
            if feed not in session.feeds:
                raise KeyError(f"Unknown feed '{feed}'")
            session.tracker.open()
            await session.collection(session.feeds[feed]).load()
            return session.select_feed(feed)
        finally:
            session.close()

    with CommandContext(config_path) as ctx:
        marker = asyncio.run(_run(ctx))
    logger.info(f"Feed '{feed}' marked as seen up to {marker}")
    return marker
