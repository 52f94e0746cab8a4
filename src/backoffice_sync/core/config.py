"""Configuration management for the YAML config file."""

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .models import CollectionSchema
from .paths import get_data_dir, get_system_path
from .reorder_session import ReorderMode

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = get_data_dir() / "config"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"
_TEMPLATE_CONFIG = get_system_path("config", "config.yaml")

GATEWAY_KINDS = ("sqlite", "http")

_DEFAULT_CONFIG_TEMPLATE = """# Auto-generated default configuration for backoffice-sync
database:
  path: "backoffice.db"
  state_path: "session_state.db"

gateway:
  kind: "sqlite"
  base_url: "http://localhost:3000"
  timeout: 15

reorder:
  mode: "manual"

collections:
  collaborators:
    reorderable: true
    fields:
      name: text
      web_link: text
    required: name
  faqs:
    reorderable: true
    fields:
      question: text
      answer: text
      is_visible: flag
    required: question
    visibility:
      flag: is_visible
      requires: answer

feeds:
  collaborators: collaborators
  faqs: faqs
"""


def _write_template(path: Path, content: str) -> None:
    """Write templated YAML content to disk with a trailing newline."""
    path.write_text(content.strip() + "\n", encoding="utf-8")


class ConfigManager:
    """Manages loading and validation of the YAML configuration file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the manager and ensure a baseline config file exists."""
        path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        if not path.is_absolute():
            path = path.resolve()
        self.config_path = str(path)
        self.base_dir = str(path.parent)
        self._config = None
        self._schemas = None
        self._ensure_default_config()

    def load_config(self) -> Dict[str, Any]:
        """Load the main configuration file."""
        if self._config is None:
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._config = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {self.config_path}")
            except Exception as e:
                logger.error(f"Failed to load config from {self.config_path}: {e}")
                raise

        return self._config

    def _ensure_default_config(self) -> None:
        """Create the default configuration file if it is missing."""
        config_file = Path(self.config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        if config_file.exists():
            return
        if _TEMPLATE_CONFIG.exists():
            try:
                shutil.copyfile(_TEMPLATE_CONFIG, config_file)
                logger.info("Created default config.yaml at %s", config_file)
                return
            except OSError as exc:
                logger.warning("Failed to copy template config: %s", exc)
        _write_template(config_file, _DEFAULT_CONFIG_TEMPLATE)
        logger.info("Created fallback default config.yaml at %s", config_file)

    def get_schemas(self) -> Dict[str, CollectionSchema]:
        """Build a CollectionSchema for every configured collection."""
        if self._schemas is None:
            config = self.load_config()
            collections = config.get('collections') or {}
            self._schemas = {
                name: CollectionSchema.from_config(name, cfg or {})
                for name, cfg in collections.items()
            }
        return self._schemas

    def get_feeds(self) -> Dict[str, str]:
        """Feed name -> collection name; a bare list means each feed reads its namesake."""
        feeds = self.load_config().get('feeds') or {}
        if isinstance(feeds, list):
            return {name: name for name in feeds}
        return {name: (collection or name) for name, collection in feeds.items()}

    def get_reorder_mode(self) -> ReorderMode:
        mode = (self.load_config().get('reorder') or {}).get('mode', ReorderMode.MANUAL.value)
        return ReorderMode(mode)

    def get_gateway_config(self) -> Dict[str, Any]:
        gateway = dict(self.load_config().get('gateway') or {})
        gateway.setdefault('kind', 'sqlite')
        gateway.setdefault('timeout', 15)
        gateway.setdefault('field_style', 'camel')
        return gateway

    def validate_config(self) -> bool:
        """Validate the configuration file."""
        try:
            config = self.load_config()

            required_sections = ['database', 'collections']
            for section in required_sections:
                if section not in config:
                    logger.error(f"Missing required section '{section}' in main config")
                    return False

            db_config = config['database'] or {}
            for key in ['path', 'state_path']:
                if key not in db_config:
                    logger.error(f"Missing required database path '{key}'")
                    return False

            gateway = self.get_gateway_config()
            if gateway['kind'] not in GATEWAY_KINDS:
                logger.error(f"Unknown gateway kind '{gateway['kind']}' (expected one of {GATEWAY_KINDS})")
                return False
            if gateway['kind'] == 'http' and not gateway.get('base_url'):
                logger.error("gateway.base_url is required for the http gateway")
                return False
            if gateway['field_style'] not in ('camel', 'snake'):
                logger.error(f"gateway.field_style must be 'camel' or 'snake', got '{gateway['field_style']}'")
                return False

            try:
                self.get_reorder_mode()
            except ValueError:
                mode = (config.get('reorder') or {}).get('mode')
                logger.error(f"Unknown reorder mode '{mode}' (expected 'manual' or 'auto')")
                return False

            try:
                schemas = self.get_schemas()
            except (ValueError, AttributeError) as e:
                logger.error(f"Invalid collection definition: {e}")
                return False

            for feed, collection in self.get_feeds().items():
                if collection not in schemas:
                    logger.error(f"Feed '{feed}' references unknown collection '{collection}'")
                    return False

            logger.info("Configuration validation passed")
            return True

        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONFIG_DIR",
]
