"""Tests for RSS parsing, web scraping and the ingest loop."""

from __future__ import annotations

import datetime
from pathlib import Path
import sys
import textwrap

import pytest
import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from newsdesk.core.config import ConfigManager  # noqa: E402
from newsdesk.core.database import DatabaseManager  # noqa: E402
from newsdesk.processors.feed_processor import FeedProcessor  # noqa: E402

FIXTURES = Path(__file__).parent / "fixtures"
RSS_URL = "https://diario.example.com/rss"
WEB_URL = "https://muni.example.org/noticias"


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class FakeHTTP:
    """Serves canned bodies by url and records every request."""

    def __init__(self, pages) -> None:
        self.pages = pages
        self.calls = []

    def get_with_retry(self, url, **kwargs):
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return FakeResponse(status_code=404)
        return page

    def close(self) -> None:
        pass


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("NEWSDESK_DATA_DIR", str(tmp_path / "data"))
    config_path = tmp_path / "config" / "config.yaml"
    config_path.parent.mkdir(parents=True)
    config_path.write_text(textwrap.dedent(f"""
        database:
          path: "test.db"
        feeds:
          diario:
            name: "Diario"
            url: "{RSS_URL}"
            category: "Nacionales"
          muni:
            name: "Municipalidad"
            url: "{WEB_URL}"
            source_type: "web"
            base_url: "https://muni.example.org/"
            scrape_selector: "article.nota"
            title_selector: "h2.titulo"
        ingestion:
          max_items_per_source: 10
          min_refresh_hours: 2
    """).strip() + "\n", encoding="utf-8")
    cm = ConfigManager(str(config_path))
    db = DatabaseManager(cm.load_config())
    return cm, db


def _pages():
    return {
        RSS_URL: FakeResponse((FIXTURES / "sample_feed.xml").read_text(encoding="utf-8")),
        "https://muni.example.org/": FakeResponse((FIXTURES / "sample_page.html").read_text(encoding="utf-8")),
    }


def test_parse_rss_builds_article_rows(env):
    cm, db = env
    processor = FeedProcessor(db, cm, http_client=FakeHTTP({}))
    source = {"id": "src-1", "url": RSS_URL}

    articles = processor.parse_rss((FIXTURES / "sample_feed.xml").read_text(encoding="utf-8"), source)

    assert [a["url"] for a in articles] == [
        "https://diario.example.com/deportes/messi-goles",
        "https://diario.example.com/economia/dolar",
    ]
    messi, dolar = articles
    assert messi["category"] == "Deportes"
    assert messi["image_url"] == "https://img.example.com/messi.jpg"
    assert messi["published_at"] == "2025-10-06T14:30:00+00:00"
    assert messi["content"].startswith("El capitán argentino volvió a ser figura en un partido")
    assert "<p>" not in messi["content"]
    assert messi["rss_source_id"] == "src-1"

    assert dolar["category"] == "Economía"
    assert dolar["image_url"] == "https://img.example.com/dolar.jpg"


def test_parse_rss_truncates_long_content(env):
    cm, db = env
    processor = FeedProcessor(db, cm, http_client=FakeHTTP({}))
    body = "palabra " * 100
    feed = f"""<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>
        <item><title>Nota larga</title><link>https://x.example/1</link>
        <description>{body}</description></item></channel></rss>"""

    [article] = processor.parse_rss(feed, {"id": None, "url": "https://x.example/rss"})

    assert len(article["content"]) == 203
    assert article["content"].endswith("...")


def test_scrape_website_uses_selectors_and_fallbacks(env):
    cm, db = env
    processor = FeedProcessor(db, cm, http_client=FakeHTTP({}))
    source = {
        "id": "web-1",
        "url": WEB_URL,
        "base_url": "https://muni.example.org/",
        "scrape_selector": "article.nota",
        "title_selector": "h2.titulo",
    }

    articles = processor.scrape_website((FIXTURES / "sample_page.html").read_text(encoding="utf-8"), source)

    assert len(articles) == 2
    first, second = articles
    assert first["title"] == "Comenzó la pavimentación de calles en el barrio norte"
    assert first["description"] == "El intendente recorrió la obra junto a los vecinos."
    assert first["url"] == "https://muni.example.org/noticias/pavimentacion"
    assert first["image_url"] == "https://muni.example.org/img/obra.jpg"
    assert first["published_at"] == "2025-10-05T12:00:00+00:00"

    assert second["title"] == "Nuevo horario del centro de salud"
    assert second["url"] == "https://muni.example.org/noticias/salud"
    assert second["image_url"] is None


def test_ingest_stores_articles_and_skips_recent_sources(env):
    cm, db = env
    http = FakeHTTP(_pages())
    processor = FeedProcessor(db, cm, http_client=http)
    assert processor.sync_sources() == 2

    result = processor.ingest()

    assert result["success"] is True
    assert result["sources_processed"] == 2
    assert result["total_articles_inserted"] == 4
    assert len(db.get_articles()) == 4
    assert "https://muni.example.org/" in http.calls
    assert WEB_URL not in http.calls

    http.calls.clear()
    skipped = processor.ingest()
    assert skipped["sources_processed"] == 0
    assert http.calls == []

    later = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=3)
    again = processor.ingest(now=later)
    assert again["sources_processed"] == 2
    assert len(db.get_articles()) == 4, "re-ingesting the same urls must not duplicate rows"


def test_ingest_continues_after_failing_source(env):
    cm, db = env
    pages = _pages()
    pages[RSS_URL] = requests.ConnectionError("boom")
    processor = FeedProcessor(db, cm, http_client=FakeHTTP(pages))
    processor.sync_sources()

    result = processor.ingest(force=True)

    assert result["sources_processed"] == 1
    assert result["total_articles_inserted"] == 2


def test_http_error_status_is_not_fatal(env):
    cm, db = env
    processor = FeedProcessor(db, cm, http_client=FakeHTTP({}))
    processor.sync_sources()

    result = processor.ingest(force=True)

    assert result["success"] is True
    assert result["sources_processed"] == 0
    assert db.get_articles() == []


def test_sync_sources_keeps_cli_disabled_state(env):
    cm, db = env
    processor = FeedProcessor(db, cm, http_client=FakeHTTP({}))
    processor.sync_sources()
    source = next(s for s in db.get_sources(active_only=False) if s["url"] == RSS_URL)
    db.update_row("rss_sources", source["id"], {"is_active": 0})

    processor.sync_sources()

    assert [s["url"] for s in db.get_sources(active_only=True)] == [WEB_URL]
