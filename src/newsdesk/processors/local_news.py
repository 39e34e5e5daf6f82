"""
Local news ingestion from provincial outlets.

Reads the feeds listed under ``local_feeds`` in config.yaml, keeps the first
items of each, fills missing images and short bodies from the article page
and stores the rows in ``local_news`` keyed by url. Sources can be processed
one at a time so a scheduler can walk the list in small batches.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import feedparser
import requests
from bs4 import BeautifulSoup

from ..core.config import ConfigManager
from ..core.database import DatabaseManager
from ..core.dates import normalize_timestamp, now_iso
from ..core.http_client import RetryableHTTPClient
from ..core.text_utils import strip_tags, truncate_text

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Diario del Norte Grande RSS Reader/1.0"
DEFAULT_MAX_ITEMS = 10
DEFAULT_CATEGORY = 'Regionales'
SUMMARY_CHARS = 300
PAGE_TEXT_CHARS = 2000

LOCAL_CATEGORY_KEYWORDS = {
    'Deportes': (
        'fútbol', 'deporte', 'deportes', 'gol', 'partido', 'liga', 'torneo',
        'quimilí', 'mitre', 'central norte', 'gimnasia', 'racing',
        'campeonato', 'copa', 'atleta', 'entrenador',
    ),
    'Policiales': (
        'policía', 'policial', 'robo', 'hurto', 'asalto', 'delito', 'crimen',
        'arresto', 'detenido', 'investigación policial', 'comisaría', 'fiscal',
        'accidente', 'choque', 'vuelco', 'ruta', 'tránsito', 'bomberos',
    ),
    'Política': (
        'intendente', 'municipio', 'concejal', 'gobernador', 'diputado',
        'senador', 'legislatura', 'elecciones', 'política', 'gobierno',
        'zamora', 'provincia', 'legislador', 'ministro',
    ),
    'Salud': (
        'hospital', 'salud', 'médico', 'enfermera', 'clínica', 'paciente',
        'vacuna', 'vacunación', 'enfermedad', 'tratamiento', 'pandemia',
        'covid', 'coronavirus', 'dengue', 'centro de salud',
    ),
    'Educación': (
        'escuela', 'colegio', 'educación', 'docente', 'maestro', 'profesor',
        'estudiante', 'alumno', 'universidad', 'capacitación', 'clases',
    ),
    'Cultura': (
        'cultura', 'cultural', 'festival', 'folklore', 'arte', 'artista',
        'música', 'teatro', 'libro', 'exposición', 'museo', 'patrimonio',
    ),
    'Economía': (
        'economía', 'comercio', 'empresa', 'trabajo', 'empleo', 'salario',
        'precio', 'inflación', 'dólar', 'banco', 'mercado', 'producción',
    ),
}

# Tried in order; the first selector yielding enough text wins.
CONTENT_SELECTORS = (
    'article .entry-content', 'article .post-content', 'article .article-content',
    '.entry-content', '.post-content', '.article-content',
    'article p', '.content p', 'main p',
)
PAGE_IMAGE_SELECTOR = 'article img, .entry-content img, .post-content img, .article-content img'

_IMAGE_URL_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp)(\?|$)", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")


def categorize_local_news(title: str, description: Optional[str] = None) -> str:
    """Pick a local section; ties keep table order and no match means Regionales."""
    text = f"{title or ''} {description or ''}".lower()
    best, best_score = DEFAULT_CATEGORY, 0
    for category, keywords in LOCAL_CATEGORY_KEYWORDS.items():
        score = 0
        for keyword in keywords:
            if keyword in text:
                score += 3 if len(keyword) > 10 else 2 if len(keyword) > 5 else 1
        if score > best_score:
            best, best_score = category, score
    return best


def extract_article_text(html: str) -> str:
    """Body text of an article page, or '' when no known container has enough of it."""
    soup = BeautifulSoup(html, 'html.parser')
    for selector in CONTENT_SELECTORS:
        parts = []
        length = 0
        for element in soup.select(selector):
            text = element.get_text(' ', strip=True)
            if len(text) > 50:
                parts.append(text)
                length += len(text)
            if length > 200:
                break
        if length > 200:
            content = _WS_RE.sub(' ', ' '.join(parts)).strip()
            return truncate_text(content, PAGE_TEXT_CHARS)
    return ''


def find_page_image(html: str, page_url: str) -> Optional[str]:
    """The page's og:image, else the first picture inside the article body."""
    soup = BeautifulSoup(html, 'html.parser')
    meta = soup.find('meta', attrs={'property': 'og:image'})
    if meta and meta.get('content'):
        return urljoin(page_url, meta['content'])
    image = soup.select_one(PAGE_IMAGE_SELECTOR)
    if image and image.get('src'):
        return urljoin(page_url, image['src'])
    return None


def _image_from_entry(entry: Dict[str, Any], html: str) -> Optional[str]:
    for enclosure in entry.get('enclosures') or []:
        if str(enclosure.get('type', '')).startswith('image/'):
            return enclosure.get('href') or enclosure.get('url')
    for media in entry.get('media_content') or []:
        url = media.get('url') or ''
        if str(media.get('type', '')).startswith('image/') or _IMAGE_URL_RE.search(url):
            return url
    for thumb in entry.get('media_thumbnail') or []:
        if thumb.get('url'):
            return thumb['url']
    if html:
        image = BeautifulSoup(html, 'html.parser').find('img', src=True)
        if image:
            return image['src']
    return None


class LocalNewsProcessor:
    """Fetches the configured local feeds and stores their items."""

    def __init__(self, db_manager: DatabaseManager, config_manager: ConfigManager,
                 http_client: Optional[RetryableHTTPClient] = None):
        self.db = db_manager
        self.config = config_manager
        settings = self.config.get_section('ingestion')
        self.max_items = int(settings.get('local_max_items', DEFAULT_MAX_ITEMS))
        self.http = http_client or RetryableHTTPClient(
            rps=float(settings.get('rps', 5.0)),
            max_retries=int(settings.get('max_retries', 3)),
            timeout=int(settings.get('timeout', 10)),
            user_agent=settings.get('local_user_agent', DEFAULT_USER_AGENT),
        )

    def sources(self) -> List[Dict[str, Any]]:
        """Local feeds from config.yaml, in file order."""
        feeds = self.config.load_config().get('local_feeds') or {}
        return [
            {'key': key, 'name': feed.get('name', key), 'url': feed['url'], 'source': feed.get('source', key)}
            for key, feed in feeds.items()
        ]

    # ------------------------------------------------------------------
    # Parsing

    def _fill_from_page(self, item: Dict[str, Any]) -> None:
        try:
            response = self.http.get_with_retry(item['url'], raise_for_status=False)
        except requests.RequestException as e:
            logger.debug(f"Could not fetch article page {item['url']}: {e}")
            return
        if not response.ok:
            logger.debug(f"Article page {item['url']} answered HTTP {response.status_code}")
            return
        page_text = extract_article_text(response.text)
        if len(page_text) > len(item['content']):
            item['content'] = page_text
        item['image_url'] = find_page_image(response.text, item['url'])

    def parse_feed(self, text: str, source: Dict[str, Any], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Turn a local RSS document into ``local_news`` rows for *source*."""
        feed = feedparser.parse(text)
        if feed.bozo and not feed.entries:
            logger.warning(f"Local feed '{source.get('url')}' could not be parsed: {feed.get('bozo_exception')}")
            return []

        items = []
        for entry in feed.entries[: limit or self.max_items]:
            title = (entry.get('title') or '').strip()
            link = entry.get('link') or entry.get('id')
            if not title or not link:
                continue

            html = entry.get('summary') or ''
            if not html and entry.get('content'):
                html = entry['content'][0].get('value') or ''
            description = strip_tags(html)

            published = entry.get('published_parsed') or entry.get('updated_parsed')
            item = {
                'title': title,
                'url': link,
                'summary': truncate_text(description, SUMMARY_CHARS),
                'content': description,
                'image_url': _image_from_entry(entry, html),
                'author': entry.get('author') or None,
                'category': categorize_local_news(title, description),
                'source': source.get('source'),
                'published_at': normalize_timestamp(published or entry.get('published')) or now_iso(),
            }
            if not item['image_url']:
                self._fill_from_page(item)
            items.append(item)

        logger.debug(f"Parsed {len(items)} local items from '{source.get('url')}'")
        return items

    # ------------------------------------------------------------------
    # Fetching

    def ingest(self, source_index: Optional[int] = None, max_per_source: Optional[int] = None) -> Dict[str, Any]:
        """Process every local source, or only the one at *source_index*.

        A failing source is logged and does not stop the run.
        """
        sources = self.sources()
        batch_mode = source_index is not None
        if batch_mode:
            if not 0 <= source_index < len(sources):
                raise IndexError(f"Local source index {source_index} out of range (0-{len(sources) - 1})")
            selected = sources[source_index:source_index + 1]
        else:
            selected = sources

        processed = inserted = done = 0
        for source in selected:
            logger.info(f"Processing local source {source['name']}")
            try:
                response = self.http.get_with_retry(source['url'], raise_for_status=False)
                if not response.ok:
                    logger.warning(f"Failed to fetch {source['url']}: HTTP {response.status_code}")
                    continue
                items = self.parse_feed(response.text, source, limit=max_per_source)
                processed += len(items)
                inserted += self.db.upsert_local_news(items)
                done += 1
            except requests.RequestException as e:
                logger.error(f"Error fetching local source {source['url']}: {e}")
            except Exception as e:
                logger.error(f"Error processing local source {source['url']}: {e}")

        has_more = batch_mode and source_index + 1 < len(sources)
        return {
            'success': True,
            'total_news_processed': processed,
            'total_news_inserted': inserted,
            'sources_processed': done,
            'total_sources': len(sources),
            'batch_mode': batch_mode,
            'current_source_index': source_index,
            'has_more': has_more,
            'message': f"Processed {done} sources, inserted {inserted} local news items",
        }

    def close(self) -> None:
        self.http.close()
