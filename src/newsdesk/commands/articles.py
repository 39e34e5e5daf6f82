"""
Article management commands.

Covers the combined front-page listing (cached), editorial mutations on the
three article tables, the atomic "make it our own" conversion, the daily
featured reset and single-article AI rewrites.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.command_context import CommandContext
from ..core.database import ARTICLE_TABLES
from ..core.dates import now_iso
from ..processors.article_cache import ArticlesCache, articles_cache

logger = logging.getLogger(__name__)

LISTING_SOURCE_LIMIT = 200
_EDITABLE_FIELDS = {
    'articles': {'title', 'description', 'content', 'url', 'image_url', 'author', 'category', 'published_at'},
    'ai_generated_articles': {'title', 'content', 'summary', 'category', 'status', 'image_url',
                              'image_caption', 'author', 'published_at'},
    'local_news': {'title', 'content', 'summary', 'image_url', 'category', 'author', 'is_active', 'published_at'},
}


class ValidationError(ValueError):
    """Raised when article input fails editorial validation."""


def validate_article(fields: Dict[str, Any]) -> None:
    """Check the minimum editorial requirements for a stored article."""
    title = (fields.get('title') or '').strip()
    content = (fields.get('content') or '').strip()
    if len(title) < 3:
        raise ValidationError("Title must be at least 3 characters long")
    if len(content) < 10:
        raise ValidationError("Content must be at least 10 characters long")
    if not (fields.get('category') or '').strip():
        raise ValidationError("Category is required")


def _check_table(table: str) -> None:
    if table not in ARTICLE_TABLES:
        raise ValueError(f"Unknown article table '{table}' (expected one of {', '.join(ARTICLE_TABLES)})")


def _configure_cache(ctx: CommandContext, cache: ArticlesCache) -> None:
    cache.configure(
        ttl_seconds=ctx.get_setting('cache', 'ttl_seconds'),
        max_entries=ctx.get_setting('cache', 'max_entries'),
    )


def _invalidate(cache: ArticlesCache, category: Optional[str]) -> None:
    if category:
        cache.invalidate_category(category)
    cache.invalidate_category(None)


def _listing_item(row: Dict[str, Any], table: str) -> Dict[str, Any]:
    if table == 'local_news':
        description = row.get('summary') or (row.get('content') or '')[:200]
    elif table == 'ai_generated_articles':
        description = row.get('summary') or ''
    else:
        description = row.get('description') or ''
    return {
        'id': row['id'],
        'title': row.get('title'),
        'description': description,
        'content': row.get('content'),
        'url': row.get('url'),
        'image_url': row.get('image_url'),
        'category': row.get('category'),
        'author': row.get('author'),
        'created_at': row.get('created_at'),
        'published_at': row.get('published_at'),
        'is_featured': bool(row.get('is_featured')),
        'is_ai': table == 'ai_generated_articles',
        'source_table': table,
    }


def list_articles(
    config_path: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
    *,
    cache: Optional[ArticlesCache] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """Return one page of the combined listing and the total item count.

    Published AI articles, RSS articles and active local news are merged,
    rows without an image are dropped, AI articles come first and each group
    is ordered newest first. Results are served from the TTL cache when fresh.
    """
    if page < 1 or page_size < 1:
        raise ValueError("page and page_size must be positive")
    cache = cache if cache is not None else articles_cache
    ctx = CommandContext(config_path)
    _configure_cache(ctx, cache)

    cached = cache.get(category, page, page_size)
    if cached is not None:
        logger.debug(f"Serving listing {category or 'all'} page {page} from cache")
        return cached

    items: List[Dict[str, Any]] = []
    for row in ctx.db.get_ai_articles(category, status='published', limit=LISTING_SOURCE_LIMIT):
        items.append(_listing_item(row, 'ai_generated_articles'))
    for row in ctx.db.get_articles(category, limit=LISTING_SOURCE_LIMIT):
        items.append(_listing_item(row, 'articles'))
    for row in ctx.db.get_local_news(category, active_only=True, limit=LISTING_SOURCE_LIMIT):
        items.append(_listing_item(row, 'local_news'))

    items = [item for item in items if (item.get('image_url') or '').strip()]
    items.sort(key=lambda item: item.get('created_at') or '', reverse=True)
    items.sort(key=lambda item: not item['is_ai'])

    total = len(items)
    start = (page - 1) * page_size
    page_items = items[start:start + page_size]
    cache.set(category, page, page_size, page_items, total)
    return page_items, total


def create_article(config_path: Optional[str], table: str, fields: Dict[str, Any], *,
                   cache: Optional[ArticlesCache] = None) -> Dict[str, Any]:
    """Insert an editor-written article into *table* after validation."""
    _check_table(table)
    validate_article(fields)
    ctx = CommandContext(config_path)
    values = {k: v for k, v in fields.items() if k in _EDITABLE_FIELDS[table]}
    if table == 'articles' and not values.get('url'):
        raise ValidationError("RSS articles require a url")
    if table == 'ai_generated_articles':
        values.setdefault('status', 'draft')
        values.setdefault('author', ctx.get_setting('outlet'))
        if values['status'] == 'published':
            values.setdefault('published_at', now_iso())
    stored = ctx.db.insert_row(table, values)
    _invalidate(cache if cache is not None else articles_cache, values.get('category'))
    logger.info(f"Created {table}/{stored['id']}")
    return stored


def update_article(config_path: Optional[str], table: str, article_id: str, fields: Dict[str, Any], *,
                   cache: Optional[ArticlesCache] = None) -> Dict[str, Any]:
    """Apply editorial changes, validating the merged result."""
    _check_table(table)
    ctx = CommandContext(config_path)
    current = ctx.db.get_row(table, article_id)
    if current is None:
        raise LookupError(f"Article '{article_id}' not found in {table}")
    changes = {k: v for k, v in fields.items() if k in _EDITABLE_FIELDS[table]}
    validate_article({**current, **changes})
    if table == 'ai_generated_articles':
        changes['updated_at'] = now_iso()
    ctx.db.update_row(table, article_id, changes)
    cache = cache if cache is not None else articles_cache
    _invalidate(cache, current.get('category'))
    if changes.get('category'):
        _invalidate(cache, changes['category'])
    return ctx.db.get_row(table, article_id)


def delete_article(config_path: Optional[str], table: str, article_id: str, *,
                   cache: Optional[ArticlesCache] = None) -> bool:
    _check_table(table)
    ctx = CommandContext(config_path)
    current = ctx.db.get_row(table, article_id)
    if current is None:
        return False
    ctx.db.delete_row(table, article_id)
    _invalidate(cache if cache is not None else articles_cache, current.get('category'))
    logger.info(f"Deleted {table}/{article_id}")
    return True


def set_status(config_path: Optional[str], article_id: str, status: str, *,
               cache: Optional[ArticlesCache] = None) -> Dict[str, Any]:
    """Publish or unpublish an AI article; publishing stamps ``published_at``."""
    if status not in ('draft', 'published'):
        raise ValueError("status must be 'draft' or 'published'")
    ctx = CommandContext(config_path)
    current = ctx.db.get_row('ai_generated_articles', article_id)
    if current is None:
        raise LookupError(f"AI article '{article_id}' not found")
    changes: Dict[str, Any] = {'status': status, 'updated_at': now_iso()}
    if status == 'published':
        changes['published_at'] = current.get('published_at') or now_iso()
    ctx.db.update_row('ai_generated_articles', article_id, changes)
    _invalidate(cache if cache is not None else articles_cache, current.get('category'))
    return ctx.db.get_row('ai_generated_articles', article_id)


def toggle_featured(config_path: Optional[str], table: str, article_id: str, *,
                    cache: Optional[ArticlesCache] = None) -> bool:
    """Flip the featured flag; returns the new value."""
    _check_table(table)
    ctx = CommandContext(config_path)
    current = ctx.db.get_row(table, article_id)
    if current is None:
        raise LookupError(f"Article '{article_id}' not found in {table}")
    featured = not bool(current.get('is_featured'))
    ctx.db.update_row(table, article_id, {'is_featured': int(featured)})
    _invalidate(cache if cache is not None else articles_cache, current.get('category'))
    return featured


def convert_to_own(config_path: Optional[str], table: str, article_id: str,
                   overrides: Optional[Dict[str, Any]] = None, *,
                   cache: Optional[ArticlesCache] = None) -> Dict[str, Any]:
    """Move an RSS or local article into ``ai_generated_articles`` as an edited piece.

    The insert and the delete run in one transaction.
    """
    ctx = CommandContext(config_path)
    overrides = {k: v for k, v in (overrides or {}).items()
                 if k in _EDITABLE_FIELDS['ai_generated_articles']}
    current = ctx.db.get_row(table, article_id) if table in ('articles', 'local_news') else None
    if current is not None:
        validate_article({**current, **overrides})
    stored = ctx.db.move_to_ai_articles(table, article_id, overrides)
    cache = cache if cache is not None else articles_cache
    _invalidate(cache, stored.get('category'))
    if current is not None:
        _invalidate(cache, current.get('category'))
    return stored


def manage_featured_status(config_path: Optional[str] = None, today: Optional[datetime.date] = None, *,
                           cache: Optional[ArticlesCache] = None) -> int:
    """Un-feature every article not created today; returns how many were cleared."""
    ctx = CommandContext(config_path)
    day = (today or datetime.datetime.now(datetime.timezone.utc).date()).isoformat()
    cleared = ctx.db.unfeature_stale(day)
    if cleared:
        (cache if cache is not None else articles_cache).invalidate_all()
    logger.info(f"Cleared featured flag on {cleared} articles not created on {day}")
    return cleared
