"""
Command context for shared initialization across CLI commands.

Builds the config, persistence gateway and durable state store once so
command implementations only deal with sessions.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .config import ConfigManager
from .database import SQLiteGateway
from .gateway import PersistenceGateway
from .http_client import HTTPGateway
from .kv_store import SQLiteKeyValueStore
from .paths import resolve_data_file
from .session import AdminSession

logger = logging.getLogger(__name__)


def build_gateway(config_manager: ConfigManager) -> PersistenceGateway:
    """Instantiate the gateway selected by ``gateway.kind``."""
    config = config_manager.load_config()
    schemas = config_manager.get_schemas()
    gateway_cfg = config_manager.get_gateway_config()

    if gateway_cfg['kind'] == 'http':
        return HTTPGateway(
            gateway_cfg['base_url'],
            schemas,
            timeout=int(gateway_cfg['timeout']),
            field_style=gateway_cfg['field_style'],
            headers=gateway_cfg.get('headers'),
        )

    db_path = str(resolve_data_file(config['database']['path'], ensure_parent=True))
    return SQLiteGateway(db_path, schemas)


class CommandContext:
    """Encapsulates shared initialization logic for CLI commands.

    Example:
        ```python
        with CommandContext(config_path) as ctx:
            session = ctx.new_session()
            asyncio.run(session.open())
        ```
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize command context with config, gateway and state store.

        Raises:
            ValueError: If configuration is invalid
        """
        self.config_manager = ConfigManager(config_path)

        if not self.config_manager.validate_config():
            raise ValueError("Invalid configuration. Run 'backoffice-sync status' for details.")

        self.config = self.config_manager.load_config()
        self.schemas = self.config_manager.get_schemas()
        self.gateway = build_gateway(self.config_manager)
        state_path = str(resolve_data_file(self.config['database']['state_path'], ensure_parent=True))
        self.store = SQLiteKeyValueStore(state_path)

        logger.debug(f"CommandContext initialized with config from {self.config_manager.config_path}")

    def new_session(self, **overrides: Any) -> AdminSession:
        """Create an AdminSession wired to this context's gateway and store."""
        return AdminSession(
            self.gateway,
            self.schemas,
            self.store,
            feeds=overrides.get('feeds', self.config_manager.get_feeds()),
            mode=overrides.get('mode', self.config_manager.get_reorder_mode()),
            clock=overrides.get('clock'),
        )

    def close(self) -> None:
        self.gateway.close()
        self.store.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - release gateway and store."""
        self.close()
