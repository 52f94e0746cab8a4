from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from .commands import items as items_cmd
from .commands import reorder as reorder_cmd
from .commands import unread as unread_cmd
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.drafts import DraftStore
from .core.errors import (
    GatewayError,
    NetworkError,
    NotFoundError,
    RejectedError,
    ServerError,
    SyncError,
    ValidationError,
)
from .core.kv_store import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore
from .core.models import CollectionSchema, OrderedItem
from .core.notifications import NotificationTrackerState
from .core.ordering import begin_move, commit_move, move_over, reorder
from .core.reorder_session import ReorderController, ReorderMode
from .core.session import AdminSession, CollectionSession

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = str(DEFAULT_CONFIG_PATH)

__all__ = [
    'list_items',
    'add',
    'edit',
    'delete',
    'move',
    'unread',
    'seen',
    'status',
    'reorder',
    'begin_move',
    'move_over',
    'commit_move',
    'OrderedItem',
    'CollectionSchema',
    'DraftStore',
    'ReorderController',
    'ReorderMode',
    'NotificationTrackerState',
    'KeyValueStore',
    'MemoryKeyValueStore',
    'SQLiteKeyValueStore',
    'CollectionSession',
    'AdminSession',
    'SyncError',
    'ValidationError',
    'GatewayError',
    'NetworkError',
    'ServerError',
    'RejectedError',
    'NotFoundError',
]


def list_items(collection: str, config_path: Optional[str] = None) -> List[OrderedItem]:
    """Return the items of *collection* in display order."""
    return items_cmd.list_items(config_path or _DEFAULT_CONFIG, collection)


def add(collection: str, fields: Mapping[str, Any], config_path: Optional[str] = None) -> Optional[OrderedItem]:
    """Create an item, applying the same validation as inline edits."""
    return items_cmd.add(config_path or _DEFAULT_CONFIG, collection, fields)


def edit(
    collection: str,
    item_id: Any,
    fields: Mapping[str, Any],
    config_path: Optional[str] = None,
) -> Optional[OrderedItem]:
    """Edit an item's fields and save them.

    Args:
        collection: Collection name from config.yaml
        item_id: Identifier of the item to edit
        fields: Editable field values to apply to the draft
        config_path: Path to main YAML config; defaults to the data dir config.
    """
    return items_cmd.edit(config_path or _DEFAULT_CONFIG, collection, item_id, fields)


def delete(collection: str, item_id: Any, config_path: Optional[str] = None) -> bool:
    """Delete an item; returns False when it does not exist."""
    return items_cmd.delete(config_path or _DEFAULT_CONFIG, collection, item_id)


def move(collection: str, source_id: Any, target_id: Any, config_path: Optional[str] = None) -> List[OrderedItem]:
    """Drag *source_id* onto *target_id* and persist the resulting order."""
    return reorder_cmd.run(config_path or _DEFAULT_CONFIG, collection, source_id, target_id)


def unread(config_path: Optional[str] = None) -> Dict[str, int]:
    """Unread counts per feed."""
    return unread_cmd.counts(config_path or _DEFAULT_CONFIG)


def seen(feed: str, config_path: Optional[str] = None) -> Optional[str]:
    """Mark *feed* as seen; returns the stored marker."""
    return unread_cmd.mark_seen(config_path or _DEFAULT_CONFIG, feed)


def status(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration and environment status for programmatic use."""
    cfg_path = config_path or _DEFAULT_CONFIG
    info: Dict[str, Any] = {'config_path': cfg_path}
    if not os.path.exists(cfg_path):
        info.update({'valid': False, 'error': f'Config file not found: {cfg_path}'})
        return info
    try:
        cm = ConfigManager(cfg_path)
        valid = cm.validate_config()
        cfg = cm.load_config()
        info.update({
            'valid': bool(valid),
            'collections': list(cm.get_schemas()) if valid else [],
            'feeds': cm.get_feeds() if valid else {},
            'reorder_mode': cm.get_reorder_mode().value if valid else None,
            'db_paths': cfg.get('database', {}) if isinstance(cfg, dict) else {},
        })
        return info
    except Exception as e:
        info.update({'valid': False, 'error': str(e)})
        return info
