from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from .commands import articles as articles_cmd
from .commands import automation as automation_cmd
from .commands import campaigns as campaigns_cmd
from .commands import cleanup as cleanup_cmd
from .commands import generate as generate_cmd
from .commands import ingest as ingest_cmd
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.database import DatabaseManager

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = str(DEFAULT_CONFIG_PATH)

__all__ = [
    'ingest',
    'ingest_local',
    'categorize',
    'list_articles',
    'generate',
    'cleanup',
    'automation',
    'send_campaign',
    'send_digest',
    'status',
]


def ingest(force: bool = False, config_path: Optional[str] = None) -> Dict[str, Any]:
    """Fetch every active RSS/web source and store new articles.

    Args:
        force: Ignore the minimum refresh interval per source.
        config_path: Path to main YAML config; defaults to data_dir/config/config.yaml.
    """
    return ingest_cmd.run(config_path or _DEFAULT_CONFIG, force=force)


def ingest_local(source_index: Optional[int] = None, max_per_source: Optional[int] = None,
                 config_path: Optional[str] = None) -> Dict[str, Any]:
    """Fetch the configured local outlets into the local news table."""
    return ingest_cmd.run_local(config_path or _DEFAULT_CONFIG, source_index=source_index,
                                max_per_source=max_per_source)


def categorize(title: str, description: str = '', config_path: Optional[str] = None) -> str:
    """Return the section a headline would be filed under."""
    return ingest_cmd.categorize(title, description, config_path)


def list_articles(
    category: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    config_path: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """Return one page of the combined front-page listing and the total count."""
    return articles_cmd.list_articles(config_path or _DEFAULT_CONFIG, category, page, page_size)


def generate(
    article_id: str,
    table: str = 'articles',
    *,
    publish: bool = False,
    with_image: bool = False,
    config_path: Optional[str] = None,
) -> Dict[str, Any]:
    """Rewrite a stored article with the configured AI provider."""
    return generate_cmd.run(config_path or _DEFAULT_CONFIG, article_id, table,
                            publish=publish, with_image=with_image)


def cleanup(dry_run: bool = False, config_path: Optional[str] = None) -> Dict[str, Any]:
    """Delete stored RSS articles whose image is missing or unreachable."""
    return cleanup_cmd.run(config_path or _DEFAULT_CONFIG, dry_run=dry_run)


def automation(force: bool = False, config_path: Optional[str] = None) -> Dict[str, Any]:
    """Run the scheduled generation when due (or always with *force*)."""
    return automation_cmd.run(config_path or _DEFAULT_CONFIG, force=force)


def send_campaign(
    campaign_id: str,
    contact_ids: Optional[List[str]] = None,
    *,
    dry_run: bool = False,
    config_path: Optional[str] = None,
) -> Dict[str, Any]:
    """Send a stored campaign to active contacts."""
    return campaigns_cmd.send_campaign(config_path or _DEFAULT_CONFIG, campaign_id, contact_ids, dry_run=dry_run)


def send_digest(
    category: Optional[str] = None,
    *,
    limit: int = 10,
    to: Optional[List[str]] = None,
    dry_run: bool = False,
    config_path: Optional[str] = None,
) -> Dict[str, Any]:
    """Email a newsletter of the latest published articles."""
    return campaigns_cmd.send_digest(config_path or _DEFAULT_CONFIG, category, limit, to, dry_run=dry_run)


def status(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration and database status for programmatic use."""
    cfg_path = config_path or _DEFAULT_CONFIG
    info: Dict[str, Any] = {'config_path': cfg_path}
    if not os.path.exists(cfg_path):
        info.update({'valid': False, 'error': f'Config file not found: {cfg_path}'})
        return info
    try:
        cm = ConfigManager(cfg_path)
        valid = cm.validate_config()
        info['valid'] = bool(valid)
        if not valid:
            return info
        cfg = cm.load_config()
        db = DatabaseManager(cfg)
        info.update({
            'enabled_feeds_count': len(cm.get_enabled_feeds()),
            'llm_provider': (cfg.get('llm') or {}).get('provider', 'gemini'),
            'email_provider': (cfg.get('email') or {}).get('provider', 'resend'),
            'db_path': db.db_path,
            'table_counts': db.table_counts(),
        })
        return info
    except Exception as e:
        info.update({'valid': False, 'error': str(e)})
        return info
