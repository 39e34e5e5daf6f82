"""Stock photo lookup through the Pexels API."""

import logging
import random
import unicodedata
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from ..core.http_client import RetryableHTTPClient
from ..core.secrets import resolve_api_key
from ..core.text_utils import first_words

logger = logging.getLogger(__name__)

PEXELS_BASE_URL = "https://api.pexels.com/v1"

CATEGORY_QUERY_HINTS = {
    'deportes': 'sports stadium athletes',
    'nacionales': 'government politics parliament',
    'politica': 'government politics parliament',
    'economia': 'business finance money',
    'espectaculos': 'entertainment movie music',
    'tecnologia': 'technology computer innovation',
    'salud': 'health medical doctor',
    'educacion': 'education school learning',
    'ciencia': 'science research laboratory',
    'medio ambiente': 'environment nature ecology',
    'internacionales': 'world international global',
    'regionales': 'city local community',
    'opinion': 'newspaper desk writing',
}


def _fold(text: str) -> str:
    """Lower-case and drop accents so 'Economía' matches 'economia'."""
    decomposed = unicodedata.normalize('NFKD', text.lower())
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def generate_image_query(title: str, category: str, description: Optional[str] = None) -> str:
    """Build a search query from the headline, the lede and a section hint."""
    parts = [first_words(title.lower(), 3)]
    if description:
        parts.append(first_words(description.lower(), 2))
    parts.append(CATEGORY_QUERY_HINTS.get(_fold(category or ''), 'news article'))
    return ' '.join(p for p in parts if p)


class PexelsClient:
    """Minimal Pexels search client."""

    def __init__(self, api_key: Optional[str] = None, config: Optional[Dict[str, Any]] = None,
                 secrets_dir: Optional[Path] = None, http_client: Optional[RetryableHTTPClient] = None):
        if api_key is None:
            env = ((config or {}).get('pexels') or {}).get('api_key_env') or 'PEXELS_API_KEY'
            api_key = resolve_api_key(env, secrets_dir, filenames=('pexels.env',))
        self.api_key = api_key
        self.http = http_client or RetryableHTTPClient(rps=2.0, max_retries=3, timeout=15)

    def search(self, query: str, per_page: int = 10) -> List[Dict[str, Any]]:
        """Return photo dicts for *query*; errors are logged and yield an empty list."""
        try:
            resp = self.http.get_with_retry(
                f"{PEXELS_BASE_URL}/search",
                headers={'Authorization': self.api_key},
                params={'query': query, 'per_page': per_page},
            )
            return resp.json().get('photos') or []
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Pexels search failed for '{query}': {e}")
            return []

    def random_photo(self, query: str) -> Optional[Dict[str, Any]]:
        photos = self.search(query, per_page=20)
        if not photos:
            return None
        return random.choice(photos)

    def image_for_article(self, title: str, category: str, description: Optional[str] = None) -> Optional[Dict[str, str]]:
        """Pick a photo for an article; returns ``{image_url, image_caption}`` or None."""
        photo = self.random_photo(generate_image_query(title, category, description))
        if not photo:
            return None
        src = photo.get('src') or {}
        url = src.get('large') or src.get('original') or photo.get('url')
        caption = f"Foto: {photo['photographer']} / Pexels" if photo.get('photographer') else 'Foto: Pexels'
        return {'image_url': url, 'image_caption': caption}
