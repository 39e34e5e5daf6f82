"""
Featured content schedule.

A schedule row places a piece of content (an article from one of the article
tables, an advertisement, a video...) in a front-page slot for a time window.
``active_items`` answers "what should be shown in this slot right now".
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.command_context import CommandContext
from ..core.database import ARTICLE_TABLES
from ..core.dates import normalize_timestamp, now_iso, parse_timestamp, utc_now
from ..processors.article_cache import ArticlesCache
from .articles import manage_featured_status

logger = logging.getLogger(__name__)

CONTENT_TYPES = ('article', 'advertisement', 'video', 'other')
DEFAULT_POSITION = 'home_top'


def parse_content_ref(content_ref: str, ref_table: Optional[str] = 'articles') -> Tuple[Optional[str], str]:
    """Split ``table:id`` into its parts; a bare id keeps *ref_table*."""
    ref = (content_ref or '').strip()
    if not ref:
        raise ValueError("Content reference is required")
    if ':' in ref:
        table, _, content_id = ref.partition(':')
        if not content_id:
            raise ValueError(f"Invalid content reference '{content_ref}'")
        return table, content_id
    return ref_table, ref


def _metadata_json(metadata: Any) -> Optional[str]:
    if metadata is None or metadata == '':
        return None
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError as e:
            raise ValueError(f"Metadata is not valid JSON: {e}")
    if not isinstance(metadata, dict):
        raise ValueError("Metadata must be a JSON object")
    return json.dumps(metadata, ensure_ascii=False)


def _validate_window(start_at: Any, end_at: Any) -> Tuple[str, Optional[str]]:
    start = normalize_timestamp(start_at)
    if not start:
        raise ValueError("A valid start date is required")
    end = None
    if end_at not in (None, ''):
        end = normalize_timestamp(end_at)
        if not end:
            raise ValueError(f"Invalid end date '{end_at}'")
        if parse_timestamp(end) <= parse_timestamp(start):
            raise ValueError("End date must be after the start date")
    return start, end


def _decode(row: Dict[str, Any]) -> Dict[str, Any]:
    if row.get('metadata'):
        try:
            row['metadata'] = json.loads(row['metadata'])
        except json.JSONDecodeError:
            logger.warning(f"Schedule {row['id']} has invalid metadata; ignoring")
            row['metadata'] = None
    row['active'] = bool(row.get('active'))
    return row


def add_schedule(
    config_path: Optional[str],
    content_ref: str,
    start_at: Any,
    end_at: Any = None,
    position: str = DEFAULT_POSITION,
    priority: int = 0,
    content_type: str = 'article',
    ref_table: Optional[str] = 'articles',
    metadata: Any = None,
    active: bool = True,
) -> Dict[str, Any]:
    """Schedule content for a slot; returns the stored row."""
    if content_type not in CONTENT_TYPES:
        raise ValueError(f"content_type must be one of {', '.join(CONTENT_TYPES)}")
    table, content_id = parse_content_ref(content_ref, ref_table)
    if content_type == 'article' and table not in ARTICLE_TABLES:
        raise ValueError(f"Articles must reference one of {', '.join(ARTICLE_TABLES)}")
    start, end = _validate_window(start_at, end_at)

    ctx = CommandContext(config_path)
    if content_type == 'article' and ctx.db.get_row(table, content_id) is None:
        raise LookupError(f"Article '{content_id}' not found in {table}")

    row = ctx.db.insert_row('featured_schedule', {
        'content_type': content_type,
        'content_id': content_id,
        'ref_table': table,
        'start_at': start,
        'end_at': end,
        'position': position or DEFAULT_POSITION,
        'priority': int(priority),
        'metadata': _metadata_json(metadata),
        'active': int(active),
    })
    logger.info(f"Scheduled {content_type} {table}:{content_id} in {row['position']} from {start}")
    return _decode(row)


def update_schedule(config_path: Optional[str], schedule_id: str, **fields: Any) -> Dict[str, Any]:
    """Update a schedule row, re-validating the window and metadata."""
    ctx = CommandContext(config_path)
    current = ctx.db.get_row('featured_schedule', schedule_id)
    if current is None:
        raise LookupError(f"Schedule '{schedule_id}' not found")

    values = dict(fields)
    if 'start_at' in values or 'end_at' in values:
        start, end = _validate_window(values.get('start_at', current['start_at']),
                                      values.get('end_at', current['end_at']))
        values['start_at'], values['end_at'] = start, end
    if 'metadata' in values:
        values['metadata'] = _metadata_json(values['metadata'])
    if 'active' in values:
        values['active'] = int(bool(values['active']))
    if 'content_type' in values and values['content_type'] not in CONTENT_TYPES:
        raise ValueError(f"content_type must be one of {', '.join(CONTENT_TYPES)}")
    values['updated_at'] = now_iso()

    ctx.db.update_row('featured_schedule', schedule_id, values)
    return _decode(ctx.db.get_row('featured_schedule', schedule_id))


def delete_schedule(config_path: Optional[str], schedule_id: str) -> bool:
    return CommandContext(config_path).db.delete_row('featured_schedule', schedule_id) > 0


def list_schedule(config_path: Optional[str] = None) -> List[Dict[str, Any]]:
    rows = CommandContext(config_path).db.fetch_all("SELECT * FROM featured_schedule ORDER BY start_at DESC")
    return [_decode(row) for row in rows]


def active_items(config_path: Optional[str] = None, position: Optional[str] = None,
                 at: Optional[datetime.datetime] = None) -> List[Dict[str, Any]]:
    """Rows live at *at* (default now): active, started and not yet ended.

    Ordered by priority (highest first) and then by most recent start.
    """
    moment = parse_timestamp(at) if at is not None else utc_now()
    query = "SELECT * FROM featured_schedule WHERE active = 1"
    params: List[Any] = []
    if position:
        query += " AND position = ?"
        params.append(position)
    rows = CommandContext(config_path).db.fetch_all(query, params)

    live = []
    for row in rows:
        start = parse_timestamp(row['start_at'])
        end = parse_timestamp(row.get('end_at'))
        if start is None or start > moment:
            continue
        if end is not None and end <= moment:
            continue
        live.append(_decode(row))

    live.sort(key=lambda row: row['start_at'], reverse=True)
    live.sort(key=lambda row: row['priority'], reverse=True)
    return live


def rotate(config_path: Optional[str] = None, today: Optional[datetime.date] = None, *,
           cache: Optional[ArticlesCache] = None) -> Dict[str, int]:
    """Daily featured maintenance: clear stale flags and deactivate ended schedules."""
    cleared = manage_featured_status(config_path, today, cache=cache)
    ctx = CommandContext(config_path)
    moment = utc_now()
    expired = 0
    for row in ctx.db.fetch_all("SELECT id, end_at FROM featured_schedule WHERE active = 1 AND end_at IS NOT NULL"):
        end = parse_timestamp(row['end_at'])
        if end is not None and end <= moment:
            expired += ctx.db.update_row('featured_schedule', row['id'], {'active': 0, 'updated_at': now_iso()})
    if expired:
        logger.info(f"Deactivated {expired} ended schedule entries")
    return {'unfeatured': cleared, 'expired': expired}
