"""
Cleanup command: remove RSS articles whose image is missing or broken.

Each image URL is checked with a HEAD request; articles without an image, or
whose image does not answer with a success status, are deleted.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..core.command_context import CommandContext
from ..processors.article_cache import articles_cache

logger = logging.getLogger(__name__)

HEAD_TIMEOUT_SECONDS = 5
MAX_REPORTED_DETAILS = 10


def image_is_reachable(session: requests.Session, url: str, timeout: float = HEAD_TIMEOUT_SECONDS) -> bool:
    try:
        resp = session.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        logger.debug(f"HEAD {url} failed: {e}")
        return False
    return resp.ok


def run(config_path: Optional[str] = None, *, dry_run: bool = False,
        session: Optional[requests.Session] = None) -> Dict[str, Any]:
    """Check every stored RSS article and delete those with missing/broken images.

    Returns ``{success, total, deleted, remaining, details}`` where details
    lists at most the first ten deletions.
    """
    ctx = CommandContext(config_path)
    rows = ctx.db.fetch_all("SELECT id, title, image_url FROM articles ORDER BY created_at DESC")
    http = session or requests.Session()
    user_agent = ctx.get_setting('ingestion', 'user_agent')
    if user_agent:
        http.headers['User-Agent'] = user_agent

    deleted = 0
    details = []
    try:
        for row in rows:
            image_url = (row.get('image_url') or '').strip()
            if not image_url:
                reason = 'missing image_url'
            elif not image_is_reachable(http, image_url):
                reason = 'broken image'
            else:
                continue

            if not dry_run:
                ctx.db.delete_row('articles', row['id'])
            deleted += 1
            if len(details) < MAX_REPORTED_DETAILS:
                details.append({'id': row['id'], 'title': row.get('title'), 'reason': reason})
            logger.info(f"{'Would delete' if dry_run else 'Deleted'} article {row['id']} ({reason})")
    finally:
        if session is None:
            http.close()

    if deleted and not dry_run:
        articles_cache.invalidate_all()

    total = len(rows)
    return {
        'success': True,
        'total': total,
        'deleted': deleted,
        'remaining': total - deleted,
        'details': details,
    }
