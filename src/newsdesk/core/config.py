"""Configuration management for YAML-based config files."""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .paths import get_data_dir

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = get_data_dir() / "config"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"

_DEFAULT_SECRETS = {
    "email_password.env": "# Placeholder SMTP password file. Replace with real credentials.\n",
}

_DEFAULT_CONFIG_TEMPLATE = """# Auto-generated default configuration for newsdesk
outlet: "La Voz del Norte Diario"

database:
  path: "newsdesk.db"

feeds:
  clarin-ultimo:
    name: "Clarín - Lo último"
    url: "https://www.clarin.com/rss/lo-ultimo/"
    category: "Nacionales"

ingestion:
  user_agent: "Mozilla/5.0 (compatible; newsdesk RSS Reader/1.0)"
  timeout: 10
  max_retries: 3
  max_items_per_source: 50
  min_refresh_hours: 2
  local_max_items: 10
  local_user_agent: "Diario del Norte Grande RSS Reader/1.0"

local_feeds:
  diariopanorama:
    name: "Diario Panorama"
    url: "https://www.diariopanorama.com/rss"
    source: "diariopanorama.com"
  infodelestero:
    name: "Info del Estero"
    url: "https://infodelestero.com/feed/"
    source: "infodelestero.com"

llm:
  provider: "gemini"
  model: "gpt-4o-mini"
  api_key_env: "OPENAI_API_KEY"
  gemini_model: "gemini-pro"
  gemini_api_key_env: "GEMINI_API_KEY"
  temperature: 0.7
  max_tokens: 2000
  max_retries: 3

email:
  provider: "resend"
  from: "noreply@lavozdelnortediario.com.ar"
  from_name: "La Voz del Norte Diario"
  resend:
    api_key_env: "RESEND_API_KEY"
  smtp:
    host: "smtp.example.com"
    port: 465
    username: ""
    password_file: "email_password.env"

pexels:
  api_key_env: "PEXELS_API_KEY"

auth:
  url: ""
  anon_key_env: "NEWSDESK_AUTH_ANON_KEY"
  refresh_margin_seconds: 300

cache:
  ttl_seconds: 300
  max_entries: 50
"""

_VALID_SOURCE_TYPES = {"rss", "web"}
_VALID_LLM_PROVIDERS = {"openai", "gemini"}
_VALID_EMAIL_PROVIDERS = {"resend", "smtp"}
_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")


def _write_template(path: Path, content: str) -> None:
    """Write templated YAML content to disk with a trailing newline."""
    path.write_text(content.strip() + "\n", encoding="utf-8")


class ConfigManager:
    """Manages loading and validation of YAML configuration files."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the manager and ensure baseline config files exist."""
        path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        if not path.is_absolute():
            path = path.resolve()
        self.config_path = str(path)
        self.base_dir = str(path.parent)
        self._config = None
        self._categories = None
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
        """Create default configuration files if they are missing."""
        config_file = Path(self.config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        if not config_file.exists():
            _write_template(config_file, _DEFAULT_CONFIG_TEMPLATE)
            logger.info("Created default config.yaml at %s", config_file)

        secrets_dir = self.secrets_dir
        if secrets_dir.exists():
            return
        secrets_dir.mkdir(parents=True, exist_ok=True)
        for filename, content in _DEFAULT_SECRETS.items():
            target = secrets_dir / filename
            try:
                target.write_text(content, encoding="utf-8")
            except OSError as exc:
                logger.warning("Failed to create placeholder secret %s: %s", target, exc)

    @property
    def secrets_dir(self) -> Path:
        return Path(self.base_dir) / "secrets"

    def load_category_keywords(self) -> Optional[Dict[str, List[str]]]:
        """Load ``categories.yaml`` keyword overrides, or None when absent."""
        if self._categories is None:
            base = Path(self.base_dir)
            for name in ("categories.yaml", "categories.yml"):
                path = base / name
                if path.exists():
                    with open(path, 'r', encoding='utf-8') as f:
                        data = yaml.safe_load(f) or {}
                    self._categories = {
                        str(cat): [str(k).lower() for k in (words or [])]
                        for cat, words in data.items()
                    }
                    logger.info("Loaded %d category keyword lists from %s", len(self._categories), path)
                    break
        return self._categories

    def get_enabled_feeds(self) -> Dict[str, Dict[str, Any]]:
        """Get all enabled feeds from the main configuration."""
        config = self.load_config()
        feeds = config.get('feeds') or {}

        enabled_feeds = {}
        for feed_name, feed_config in feeds.items():
            if feed_config.get('enabled', True):
                enabled_feeds[feed_name] = feed_config

        return enabled_feeds

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return a top-level config section as a dict (empty when missing)."""
        return self.load_config().get(name) or {}

    def validate_config(self) -> bool:
        """Validate the configuration file."""
        try:
            config = self.load_config()

            for section in ('database', 'feeds'):
                if section not in config:
                    logger.error(f"Missing required section '{section}' in main config")
                    return False

            if 'path' not in (config['database'] or {}):
                logger.error("Missing required database path 'path'")
                return False

            feeds = config.get('feeds') or {}
            if not isinstance(feeds, dict):
                logger.error("'feeds' must be a mapping of feed keys to feed settings")
                return False
            for key, feed in feeds.items():
                if not isinstance(feed, dict) or not feed.get('url'):
                    logger.error(f"Feed '{key}' must define a url")
                    return False
                source_type = feed.get('source_type', 'rss')
                if source_type not in _VALID_SOURCE_TYPES:
                    logger.error(f"Feed '{key}' has unknown source_type '{source_type}'")
                    return False
                if source_type == 'web' and not feed.get('scrape_selector'):
                    logger.error(f"Web source '{key}' requires a scrape_selector")
                    return False

            for key, feed in (config.get('local_feeds') or {}).items():
                if not isinstance(feed, dict) or not feed.get('url'):
                    logger.error(f"Local feed '{key}' is missing a url")
                    return False

            provider = (config.get('llm') or {}).get('provider', 'gemini')
            if provider not in _VALID_LLM_PROVIDERS:
                logger.error(f"llm.provider must be one of {sorted(_VALID_LLM_PROVIDERS)}")
                return False

            email_provider = (config.get('email') or {}).get('provider', 'resend')
            if email_provider not in _VALID_EMAIL_PROVIDERS:
                logger.error(f"email.provider must be one of {sorted(_VALID_EMAIL_PROVIDERS)}")
                return False

            cache_cfg = config.get('cache') or {}
            for key in ('ttl_seconds', 'max_entries'):
                value = cache_cfg.get(key)
                if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                    logger.error(f"cache.{key} must be a positive number")
                    return False

            schedule = (config.get('automation') or {}).get('schedule_time')
            if schedule is not None and not _TIME_RE.match(str(schedule)):
                logger.error("automation.schedule_time must look like HH:MM")
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
