"""
Scheduled generation run.

Reads the latest enabled ``automation_config`` row and, when the run is
due, refreshes the RSS sources and rewrites the newest articles of each
configured section. Every run leaves a ``running`` log row and a final
``success``/``error`` row in ``automation_logs``.
"""

import datetime
import json
import logging
import re
from typing import Any, Dict, List, Optional

from ..core.command_context import CommandContext
from ..processors.ai_writer import ArticleWriter
from ..processors.article_cache import articles_cache
from ..processors.feed_processor import FeedProcessor
from .generate import build_writer, rewrite_and_store

logger = logging.getLogger(__name__)

SCHEDULE_WINDOW_MINUTES = 5
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def _minutes_of_day(value: str) -> int:
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid schedule time '{value}' (expected HH:MM)")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid schedule time '{value}' (expected HH:MM)")
    return hours * 60 + minutes


def is_due(schedule_time: str, now: datetime.datetime, window_minutes: int = SCHEDULE_WINDOW_MINUTES) -> bool:
    """True when *now* is within *window_minutes* of the HH:MM schedule (wrapping at midnight)."""
    diff = abs(now.hour * 60 + now.minute - _minutes_of_day(schedule_time))
    return min(diff, 24 * 60 - diff) <= window_minutes


def configure(
    config_path: Optional[str],
    schedule_time: str,
    categories: List[str],
    articles_per_category: int = 1,
    auto_publish: bool = False,
    enabled: bool = True,
) -> Dict[str, Any]:
    """Store a new automation configuration; the newest enabled row wins."""
    _minutes_of_day(schedule_time)
    if articles_per_category < 1:
        raise ValueError("articles_per_category must be at least 1")
    cleaned = [c.strip() for c in categories if c and c.strip()]
    if not cleaned:
        raise ValueError("At least one category is required")
    ctx = CommandContext(config_path)
    return ctx.db.insert_row('automation_config', {
        'enabled': int(enabled),
        'schedule_time': schedule_time.strip(),
        'categories': json.dumps(cleaned, ensure_ascii=False),
        'articles_per_category': articles_per_category,
        'auto_publish': int(auto_publish),
    })


def get_config(config_path: Optional[str] = None) -> Optional[Dict[str, Any]]:
    return CommandContext(config_path).db.get_latest_automation_config()


def run(
    config_path: Optional[str] = None,
    *,
    force: bool = False,
    now: Optional[datetime.datetime] = None,
    writer: Optional[ArticleWriter] = None,
    feed_processor: Optional[FeedProcessor] = None,
) -> Dict[str, Any]:
    """Execute the automation if it is due (or *force* is set).

    Returns a dict with ``success``, ``executed``, ``message``,
    ``articles_generated`` and ``errors``.
    """
    ctx = CommandContext(config_path)
    auto_cfg = ctx.db.get_latest_automation_config()
    if auto_cfg is None:
        logger.info("No enabled automation configuration")
        return {'success': True, 'executed': False, 'message': 'No active automation configuration',
                'articles_generated': 0, 'errors': []}

    now = now or datetime.datetime.now()
    if not force and not is_due(auto_cfg['schedule_time'], now):
        message = f"Not due yet. Scheduled for {auto_cfg['schedule_time']}"
        logger.info(message)
        return {'success': True, 'executed': False, 'message': message, 'articles_generated': 0, 'errors': []}

    ctx.db.log_automation('running', 'Starting automatic processing')
    try:
        processor = feed_processor or FeedProcessor(ctx.db, ctx.config_manager)
        try:
            result = processor.ingest()
            logger.info(f"Ingestion before generation: {result['message']}")
        except Exception as e:
            logger.warning(f"RSS ingestion failed, continuing with stored articles: {e}")

        writer = writer or build_writer(ctx)
        publish = bool(auto_cfg.get('auto_publish'))
        per_category = int(auto_cfg.get('articles_per_category') or 1)
        generated = 0
        errors: List[str] = []

        for category in auto_cfg.get('categories') or []:
            candidates = ctx.db.get_articles(category, limit=per_category, source_only=True)
            if not candidates:
                message = f"No RSS articles available in {category}"
                logger.warning(message)
                errors.append(message)
                continue
            for article in candidates:
                try:
                    rewrite_and_store(ctx, article, writer, publish=publish, category=category)
                    generated += 1
                except Exception as e:
                    message = f"Error in {category}: {article['title'][:50]}... - {e}"
                    logger.error(message)
                    errors.append(message)

        if errors:
            status, message = 'error', f"Generated {generated} articles with {len(errors)} errors"
        else:
            status, message = 'success', f"{generated} articles generated successfully"
        ctx.db.log_automation(status, message, generated)
        if generated and publish:
            articles_cache.invalidate_all()
        logger.info(f"Automation finished: {message}")
        return {'success': True, 'executed': True, 'message': message,
                'articles_generated': generated, 'errors': errors}

    except Exception as e:
        logger.error(f"Automation failed: {e}")
        ctx.db.log_automation('error', str(e))
        raise
