"""
Advertisement, ad-setting and modal toast commands.

Ads are grouped by placement (sidebar, header, a section name...) and shown
in ``sort_order``. When several ads share a placement the front end rotates
through the active ones; ``pick_rotating_ad`` reproduces that selection.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List, Optional

from ..core.command_context import CommandContext
from ..core.dates import normalize_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_PLACEMENT = 'sidebar'
DEFAULT_WIDTH = 300
DEFAULT_HEIGHT = 250


def _ad_row(row: Dict[str, Any]) -> Dict[str, Any]:
    row['is_active'] = bool(row.get('is_active'))
    return row


def add_advertisement(
    config_path: Optional[str],
    title: str,
    image_url: str,
    link_url: Optional[str] = None,
    placement: str = DEFAULT_PLACEMENT,
    width: int = DEFAULT_WIDTH,
    height: int = DEFAULT_HEIGHT,
    is_active: bool = True,
    start_date: Any = None,
    end_date: Any = None,
    sort_order: Optional[int] = None,
) -> Dict[str, Any]:
    """Store an ad; without *sort_order* it goes last in its placement."""
    if not (title or '').strip():
        raise ValueError("Advertisement title is required")
    if not (image_url or '').strip():
        raise ValueError("Advertisement image_url is required")
    ctx = CommandContext(config_path)
    if sort_order is None:
        rows = ctx.db.fetch_all(
            "SELECT COALESCE(MAX(sort_order), -1) AS max_order FROM advertisements WHERE placement = ?",
            (placement,),
        )
        sort_order = rows[0]['max_order'] + 1
    row = ctx.db.insert_row('advertisements', {
        'title': title.strip(),
        'image_url': image_url.strip(),
        'link_url': link_url,
        'placement': placement or DEFAULT_PLACEMENT,
        'width': int(width),
        'height': int(height),
        'is_active': int(is_active),
        'start_date': normalize_timestamp(start_date),
        'end_date': normalize_timestamp(end_date),
        'sort_order': int(sort_order),
    })
    logger.info(f"Added advertisement '{row['title']}' in {row['placement']}")
    return _ad_row(row)


def list_advertisements(config_path: Optional[str] = None, placement: Optional[str] = None,
                        active_only: bool = False) -> List[Dict[str, Any]]:
    query = "SELECT * FROM advertisements WHERE 1=1"
    params: List[Any] = []
    if placement:
        query += " AND placement = ?"
        params.append(placement)
    if active_only:
        query += " AND is_active = 1"
    query += " ORDER BY placement, sort_order, created_at"
    return [_ad_row(row) for row in CommandContext(config_path).db.fetch_all(query, params)]


def set_advertisement_active(config_path: Optional[str], ad_id: str, active: bool) -> bool:
    return CommandContext(config_path).db.update_row('advertisements', ad_id, {'is_active': int(active)}) > 0


def delete_advertisement(config_path: Optional[str], ad_id: str) -> bool:
    return CommandContext(config_path).db.delete_row('advertisements', ad_id) > 0


def move_advertisement(config_path: Optional[str], ad_id: str, direction: str) -> bool:
    """Swap an ad's ``sort_order`` with its neighbour in the same placement.

    Returns False when the ad is already first (``up``) or last (``down``).
    """
    if direction not in ('up', 'down'):
        raise ValueError("direction must be 'up' or 'down'")
    ctx = CommandContext(config_path)
    current = ctx.db.get_row('advertisements', ad_id)
    if current is None:
        raise LookupError(f"Advertisement '{ad_id}' not found")
    siblings = ctx.db.fetch_all(
        "SELECT id, sort_order FROM advertisements WHERE placement = ? ORDER BY sort_order, created_at",
        (current['placement'],),
    )
    index = next(i for i, row in enumerate(siblings) if row['id'] == ad_id)
    neighbour_index = index - 1 if direction == 'up' else index + 1
    if neighbour_index < 0 or neighbour_index >= len(siblings):
        return False
    neighbour = siblings[neighbour_index]
    with ctx.db.get_connection() as conn:
        conn.execute("UPDATE advertisements SET sort_order = ? WHERE id = ?", (neighbour['sort_order'], ad_id))
        conn.execute("UPDATE advertisements SET sort_order = ? WHERE id = ?",
                     (current['sort_order'], neighbour['id']))
    return True


def _in_window(row: Dict[str, Any], moment: datetime.datetime) -> bool:
    start = parse_timestamp(row.get('start_date'))
    end = parse_timestamp(row.get('end_date'))
    return (start is None or start <= moment) and (end is None or end > moment)


def pick_rotating_ad(config_path: Optional[str], placement: str, tick: int = 0,
                     at: Optional[datetime.datetime] = None) -> Optional[Dict[str, Any]]:
    """Return the active ad shown at rotation step *tick* for *placement*."""
    moment = parse_timestamp(at) if at is not None else utc_now()
    ads = [ad for ad in list_advertisements(config_path, placement, active_only=True) if _in_window(ad, moment)]
    if not ads:
        return None
    return ads[tick % len(ads)]


def _increment(config_path: Optional[str], ad_id: str, column: str) -> bool:
    ctx = CommandContext(config_path)
    with ctx.db.get_connection() as conn:
        cursor = conn.execute(f"UPDATE advertisements SET {column} = {column} + 1 WHERE id = ?", (ad_id,))
        return cursor.rowcount > 0


def record_impression(config_path: Optional[str], ad_id: str) -> bool:
    return _increment(config_path, ad_id, 'impression_count')


def record_click(config_path: Optional[str], ad_id: str) -> bool:
    return _increment(config_path, ad_id, 'click_count')


def get_ad_settings(config_path: Optional[str] = None) -> Dict[str, int]:
    """Ad layout settings as integers (defaults are seeded with the schema)."""
    rows = CommandContext(config_path).db.fetch_all("SELECT key, value FROM ad_settings")
    settings: Dict[str, int] = {}
    for row in rows:
        try:
            settings[row['key']] = int(row['value'])
        except ValueError:
            logger.warning(f"Ignoring non-numeric ad setting {row['key']}={row['value']!r}")
    return settings


def set_ad_setting(config_path: Optional[str], key: str, value: int, description: Optional[str] = None) -> None:
    if int(value) < 1:
        raise ValueError(f"{key} must be a positive integer")
    ctx = CommandContext(config_path)
    with ctx.db.get_connection() as conn:
        conn.execute(
            '''
            INSERT INTO ad_settings (key, value, description) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                description = COALESCE(excluded.description, ad_settings.description)
            ''',
            (key, str(int(value)), description),
        )


# ----------------------------------------------------------------------
# Modal toasts

def _toast_row(row: Dict[str, Any]) -> Dict[str, Any]:
    for flag in ('is_active', 'repeatable', 'show_once'):
        row[flag] = bool(row.get(flag))
    return row


def add_toast(
    config_path: Optional[str],
    title: str,
    body: str = '',
    image_url: Optional[str] = None,
    link_url: Optional[str] = None,
    is_active: bool = True,
    start_at: Any = None,
    end_at: Any = None,
    repeatable: bool = False,
    show_once: bool = True,
) -> Dict[str, Any]:
    if not (title or '').strip():
        raise ValueError("Toast title is required")
    start = normalize_timestamp(start_at)
    end = normalize_timestamp(end_at)
    if start and end and parse_timestamp(end) <= parse_timestamp(start):
        raise ValueError("End date must be after the start date")
    row = CommandContext(config_path).db.insert_row('modal_toasts', {
        'title': title.strip(),
        'body': body,
        'image_url': image_url or None,
        'link_url': link_url or None,
        'is_active': int(is_active),
        'start_at': start,
        'end_at': end,
        'repeatable': int(repeatable),
        'show_once': int(show_once),
    })
    return _toast_row(row)


def delete_toast(config_path: Optional[str], toast_id: str) -> bool:
    return CommandContext(config_path).db.delete_row('modal_toasts', toast_id) > 0


def list_toasts(config_path: Optional[str] = None, limit: int = 200) -> List[Dict[str, Any]]:
    rows = CommandContext(config_path).db.fetch_all(
        "SELECT * FROM modal_toasts ORDER BY created_at DESC LIMIT ?", (limit,)
    )
    return [_toast_row(row) for row in rows]


def active_toasts(config_path: Optional[str] = None, at: Optional[datetime.datetime] = None) -> List[Dict[str, Any]]:
    """Active toasts whose optional start/end window contains *at* (default now)."""
    moment = parse_timestamp(at) if at is not None else utc_now()
    live = []
    for row in list_toasts(config_path):
        if not row['is_active']:
            continue
        start = parse_timestamp(row.get('start_at'))
        end = parse_timestamp(row.get('end_at'))
        if start is not None and start > moment:
            continue
        if end is not None and end <= moment:
            continue
        live.append(row)
    return live
