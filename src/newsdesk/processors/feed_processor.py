"""
RSS feed and web-scrape ingestion.

Fetches every active source, turns feed items (or scraped page blocks) into
article rows, assigns a section with the keyword categorizer and upserts
the rows keyed by url.
"""

import datetime
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import feedparser
import requests
from bs4 import BeautifulSoup

from ..core.config import ConfigManager
from ..core.database import DatabaseManager
from ..core.dates import normalize_timestamp, now_iso, parse_timestamp, utc_now
from ..core.http_client import RetryableHTTPClient
from ..core.text_utils import strip_tags, truncate_text
from .categorizer import Categorizer

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; newsdesk RSS Reader/1.0)"
DEFAULT_MAX_ITEMS = 50
DEFAULT_MIN_REFRESH_HOURS = 2
CONTENT_PREVIEW_CHARS = 200

_SOURCE_FIELDS = (
    'name', 'url', 'category', 'source_type', 'scrape_selector', 'title_selector',
    'description_selector', 'link_selector', 'date_selector', 'base_url',
)


def _absolute(url: Optional[str], base_url: str) -> Optional[str]:
    if not url:
        return None
    if url.startswith('http'):
        return url
    return urljoin(base_url, url)


def _select_text(element, selector: Optional[str]) -> str:
    if not selector:
        return ''
    found = element.select_one(selector)
    return found.get_text(' ', strip=True) if found else ''


class FeedProcessor:
    """Fetches active sources and stores their articles."""

    def __init__(self, db_manager: DatabaseManager, config_manager: ConfigManager,
                 http_client: Optional[RetryableHTTPClient] = None):
        """Bind database/config managers and build the fetch client from ``ingestion`` settings."""
        self.db = db_manager
        self.config = config_manager
        settings = self.config.get_section('ingestion')
        self.max_items = int(settings.get('max_items_per_source', DEFAULT_MAX_ITEMS))
        self.min_refresh = datetime.timedelta(
            hours=float(settings.get('min_refresh_hours', DEFAULT_MIN_REFRESH_HOURS))
        )
        self.http = http_client or RetryableHTTPClient(
            rps=float(settings.get('rps', 5.0)),
            max_retries=int(settings.get('max_retries', 3)),
            timeout=int(settings.get('timeout', 10)),
            user_agent=settings.get('user_agent', DEFAULT_USER_AGENT),
        )
        self.categorize = Categorizer(self.config.load_category_keywords())

    # ------------------------------------------------------------------
    # Source bookkeeping

    def sync_sources(self) -> int:
        """Seed or update ``rss_sources`` from the ``feeds`` section of config.yaml."""
        feeds = (self.config.load_config().get('feeds') or {})
        count = 0
        for key, feed in feeds.items():
            source = {field: feed.get(field) for field in _SOURCE_FIELDS if feed.get(field) is not None}
            source.setdefault('name', key)
            source.setdefault('source_type', 'rss')
            if 'enabled' in feed:
                source['is_active'] = 1 if feed['enabled'] else 0
            self.db.upsert_source(source)
            count += 1
        logger.info(f"Synchronized {count} sources from configuration")
        return count

    def _recently_processed(self, source: Dict[str, Any], now: datetime.datetime) -> bool:
        last = parse_timestamp(source.get('updated_at'))
        return last is not None and last > now - self.min_refresh

    # ------------------------------------------------------------------
    # Parsing

    def _image_from_entry(self, entry: Dict[str, Any]) -> Optional[str]:
        for enclosure in entry.get('enclosures') or []:
            if str(enclosure.get('type', '')).startswith('image/'):
                return enclosure.get('href') or enclosure.get('url')
        for media in entry.get('media_content') or []:
            if str(media.get('type', '')).startswith('image/') or media.get('medium') == 'image':
                return media.get('url')
        return None

    def parse_rss(self, text: str, source: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Turn an RSS/Atom document into article rows for *source*."""
        feed = feedparser.parse(text)
        if feed.bozo and not feed.entries:
            logger.warning(f"Feed '{source.get('url')}' could not be parsed: {feed.get('bozo_exception')}")
            return []

        articles = []
        for entry in feed.entries[: self.max_items]:
            title = (entry.get('title') or '').strip()
            link = entry.get('link') or entry.get('id')
            if not title or not link:
                continue

            full_content = ''
            if entry.get('content'):
                full_content = entry['content'][0].get('value') or ''
            description = entry.get('summary') or full_content
            full_content = full_content or description or ''

            published = entry.get('published_parsed') or entry.get('updated_parsed')
            published_at = normalize_timestamp(published or entry.get('published')) or now_iso()

            articles.append({
                'rss_source_id': source.get('id'),
                'title': title,
                'description': description or '',
                'url': link,
                'author': entry.get('author') or '',
                'published_at': published_at,
                'category': self.categorize(title, strip_tags(description)),
                'image_url': self._image_from_entry(entry),
                'content': truncate_text(strip_tags(full_content), CONTENT_PREVIEW_CHARS),
            })

        logger.debug(f"Parsed {len(articles)} articles from feed '{source.get('url')}'")
        return articles

    def scrape_website(self, html: str, source: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Extract article rows from an HTML page using the source's CSS selectors."""
        base_url = source.get('base_url') or source['url']
        soup = BeautifulSoup(html, 'html.parser')

        articles = []
        for element in soup.select(source['scrape_selector'])[: self.max_items]:
            full_text = element.get_text('\n', strip=True)
            lines = [line.strip() for line in full_text.split('\n') if line.strip()]

            heading = element.select_one('h1, h2, h3')
            title = (_select_text(element, source.get('title_selector'))
                     or (heading.get_text(' ', strip=True) if heading else '')
                     or (lines[0] if lines else ''))

            paragraph = element.select_one('p')
            description = (_select_text(element, source.get('description_selector'))
                           or (paragraph.get_text(' ', strip=True) if paragraph else '')
                           or ' '.join(lines))

            link_el = element.select_one(source['link_selector']) if source.get('link_selector') else None
            if link_el is None or not link_el.get('href'):
                link_el = element.select_one('a[href]')
            if link_el is None and element.name == 'a' and element.get('href'):
                link_el = element
            link = _absolute(link_el.get('href') if link_el else None, base_url)

            date_text = _select_text(element, source.get('date_selector'))
            if not date_text:
                time_el = element.select_one('time[datetime]')
                date_text = time_el['datetime'] if time_el else _select_text(element, '.date, .published')

            image = element.select_one('img[src]')
            image_url = _absolute(image['src'] if image else None, base_url)

            if not title or not link:
                continue

            articles.append({
                'rss_source_id': source.get('id'),
                'title': title,
                'description': description,
                'url': link,
                'author': '',
                'published_at': normalize_timestamp(date_text) or now_iso(),
                'category': self.categorize(title, description),
                'image_url': image_url,
                'content': truncate_text(' '.join(lines), CONTENT_PREVIEW_CHARS),
            })

        logger.debug(f"Scraped {len(articles)} articles from {base_url}")
        return articles

    # ------------------------------------------------------------------
    # Fetching

    def fetch_source(self, source: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
        """Fetch and parse one source; returns None when the server answered with an error."""
        is_web = source.get('source_type') == 'web'
        url = (source.get('base_url') or source['url']) if is_web else source['url']
        response = self.http.get_with_retry(url, raise_for_status=False)
        if not response.ok:
            logger.warning(f"Failed to fetch {url}: HTTP {response.status_code}")
            return None
        if is_web:
            return self.scrape_website(response.text, source)
        return self.parse_rss(response.text, source)

    def ingest(self, force: bool = False, now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
        """Process every active source sequentially.

        Sources fetched within the refresh window are skipped unless *force*.
        A failing source is logged and does not stop the run.
        """
        now = now or utc_now()
        sources = self.db.get_sources(active_only=True)
        logger.info(f"Found {len(sources)} active sources")

        processed = inserted = sources_done = 0
        for source in sources:
            if not force and self._recently_processed(source, now):
                logger.info(f"Skipping {source['url']} - processed recently at {source['updated_at']}")
                continue
            try:
                articles = self.fetch_source(source)
                if articles is None:
                    continue
                processed += len(articles)
                inserted += self.db.upsert_articles(articles)
                sources_done += 1
                self.db.touch_source(source['id'])
                logger.info(f"Stored {len(articles)} articles from {source['url']}")
            except requests.RequestException as e:
                logger.error(f"Error fetching source {source['url']}: {e}")
            except Exception as e:
                logger.error(f"Error processing source {source['url']}: {e}")

        message = (
            f"Processed {sources_done} sources, stored {inserted} articles"
            if sources else "No active RSS sources found"
        )
        return {
            'success': True,
            'total_articles_processed': processed,
            'total_articles_inserted': inserted,
            'sources_processed': sources_done,
            'message': message,
        }

    def close(self) -> None:
        self.http.close()
