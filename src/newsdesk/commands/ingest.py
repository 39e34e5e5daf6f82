"""
Ingest command and RSS source management.

``run`` synchronizes sources declared in config.yaml into ``rss_sources``
and then fetches every active source. ``run_local`` does the same for the
provincial outlets listed under ``local_feeds``.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.command_context import CommandContext
from ..core.http_client import RetryableHTTPClient
from ..processors.article_cache import articles_cache
from ..processors.categorizer import Categorizer
from ..processors.feed_processor import FeedProcessor
from ..processors.local_news import LocalNewsProcessor

logger = logging.getLogger(__name__)

_SELECTOR_FIELDS = ('scrape_selector', 'title_selector', 'description_selector',
                    'link_selector', 'date_selector', 'base_url')


def run(config_path: Optional[str] = None, *, force: bool = False,
        http_client: Optional[RetryableHTTPClient] = None) -> Dict[str, Any]:
    """Fetch every active source and upsert its articles.

    Args:
        config_path: Path to the main configuration file
        force: Ignore the minimum refresh interval per source
        http_client: Optional pre-built client (tests inject fakes here)
    """
    logger.info("Starting ingest command")
    ctx = CommandContext(config_path)
    ctx.db.backup_database()
    processor = FeedProcessor(ctx.db, ctx.config_manager, http_client=http_client)
    try:
        processor.sync_sources()
        result = processor.ingest(force=force)
    finally:
        if http_client is None:
            processor.close()
    if result['total_articles_inserted']:
        articles_cache.invalidate_all()
    logger.info(result['message'])
    return result


def run_local(config_path: Optional[str] = None, *, source_index: Optional[int] = None,
              max_per_source: Optional[int] = None,
              http_client: Optional[RetryableHTTPClient] = None) -> Dict[str, Any]:
    """Fetch the local outlets into ``local_news``.

    With *source_index* only that source is processed and the result's
    ``has_more`` tells the caller whether another index follows.
    """
    logger.info("Starting local news ingest")
    ctx = CommandContext(config_path)
    processor = LocalNewsProcessor(ctx.db, ctx.config_manager, http_client=http_client)
    try:
        result = processor.ingest(source_index=source_index, max_per_source=max_per_source)
    finally:
        if http_client is None:
            processor.close()
    if result['total_news_processed']:
        articles_cache.invalidate_all()
    logger.info(result['message'])
    return result


def add_source(config_path: Optional[str], url: str, *, name: Optional[str] = None,
               category: Optional[str] = None, source_type: str = 'rss',
               **selectors: Optional[str]) -> Dict[str, Any]:
    """Register (or update) a source directly in the database."""
    if source_type not in ('rss', 'web'):
        raise ValueError("source_type must be 'rss' or 'web'")
    if source_type == 'web' and not selectors.get('scrape_selector'):
        raise ValueError("Web sources need a scrape_selector")
    ctx = CommandContext(config_path)
    source: Dict[str, Any] = {'url': url, 'name': name or url, 'category': category,
                              'source_type': source_type, 'is_active': 1}
    for field in _SELECTOR_FIELDS:
        if selectors.get(field):
            source[field] = selectors[field]
    return ctx.db.upsert_source(source)


def list_sources(config_path: Optional[str] = None, active_only: bool = False) -> List[Dict[str, Any]]:
    return CommandContext(config_path).db.get_sources(active_only=active_only)


def set_source_active(config_path: Optional[str], source: str, active: bool) -> bool:
    """Enable or disable a source given its id or url."""
    ctx = CommandContext(config_path)
    rows = ctx.db.fetch_all("SELECT id FROM rss_sources WHERE id = ? OR url = ?", (source, source))
    if not rows:
        return False
    ctx.db.update_row('rss_sources', rows[0]['id'], {'is_active': int(active)})
    return True


def categorize(title: str, description: str = '', config_path: Optional[str] = None) -> str:
    """Categorize an ad-hoc headline with the configured keyword table."""
    keywords = None
    if config_path is not None:
        keywords = CommandContext(config_path).config_manager.load_category_keywords()
    return Categorizer(keywords)(title, description)
