"""
Reorder command: one drag gesture followed by persistence.

The gesture runs through the same controller the interactive dashboard uses:
drag_start(source) then drop(target). In manual mode the order is then saved
explicitly; in auto mode the drop already scheduled the save.
"""

import asyncio
import logging
from typing import Any, List

from ..core.command_context import CommandContext
from ..core.errors import GatewayError
from ..core.models import OrderedItem
from ..core.reorder_session import ReorderMode

logger = logging.getLogger(__name__)


def run(config_path: str, collection: str, source_id: Any, target_id: Any) -> List[OrderedItem]:
    """Move *source_id* onto *target_id* and persist the new order.

    Returns the order as displayed afterwards.

    Raises:
        ValueError: If the collection is not reorderable or an id is unknown
        GatewayError: If saving the order failed (the message is the section error)
    """

    async def _run(ctx: CommandContext) -> List[OrderedItem]:
        session = ctx.new_session()
        try:
            target = session.collection(collection)
            if not target.schema.reorderable:
                raise ValueError(f"Collection '{collection}' is not reorderable")
            await target.load()

            controller = target.controller
            if not controller.drag_start(source_id):
                raise ValueError(f"{collection} item {source_id} not found")
            if target.find(target_id) is None:
                controller.drag_end()
                raise ValueError(f"{collection} item {target_id} not found")

            changed = controller.drop(target_id)
            if not changed:
                logger.info("Order unchanged; nothing to save")
                return controller.items

            if controller.mode is ReorderMode.AUTO:
                await controller.wait_idle()
            else:
                await controller.save()

            if controller.order_error:
                raise GatewayError(controller.order_error)
            return controller.items
        finally:
            session.close()

    with CommandContext(config_path) as ctx:
        return asyncio.run(_run(ctx))
