"""Tests for local outlet ingestion into the local news table."""

from __future__ import annotations

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
from newsdesk.processors.local_news import (  # noqa: E402
    LocalNewsProcessor,
    categorize_local_news,
    extract_article_text,
    find_page_image,
)

FIXTURES = Path(__file__).parent / "fixtures"
PANORAMA_URL = "https://panorama.example.com/rss"
ESTERO_URL = "https://estero.example.com/feed/"
ROBBERY_URL = "https://panorama.example.com/policiales/robo"


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


def _pages(**overrides):
    pages = {
        PANORAMA_URL: FakeResponse((FIXTURES / "local_feed.xml").read_text(encoding="utf-8")),
        ROBBERY_URL: FakeResponse((FIXTURES / "local_article.html").read_text(encoding="utf-8")),
        ESTERO_URL: requests.ConnectionError("connection refused"),
    }
    pages.update(overrides)
    return pages


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("NEWSDESK_DATA_DIR", str(tmp_path / "data"))
    config_path = tmp_path / "config" / "config.yaml"
    config_path.parent.mkdir(parents=True)
    config_path.write_text(textwrap.dedent(f"""
        database:
          path: "test.db"
        feeds: {{}}
        local_feeds:
          panorama:
            name: "Panorama"
            url: "{PANORAMA_URL}"
            source: "panorama.example.com"
          estero:
            name: "Estero"
            url: "{ESTERO_URL}"
            source: "estero.example.com"
    """).strip() + "\n", encoding="utf-8")
    cm = ConfigManager(str(config_path))
    db = DatabaseManager(cm.load_config())
    return cm, db


def test_categorize_local_news():
    assert categorize_local_news("Central Norte ganó el clásico") == "Deportes"
    assert categorize_local_news("Paro docente", "Las escuelas no tendrán clases") == "Educación"
    assert categorize_local_news("Vecinos pintaron la plaza") == "Regionales"


def test_extract_article_text_reads_entry_content():
    html = (FIXTURES / "local_article.html").read_text(encoding="utf-8")
    text = extract_article_text(html)
    assert text.startswith("La policía provincial detuvo")
    assert "comisaría primera" in text
    assert "  " not in text

    assert extract_article_text("<article><p>Muy corto.</p></article>") == ""


def test_extract_article_text_truncates_long_pages():
    body = "<main>" + "<p>" + "palabra " * 400 + "</p></main>"
    text = extract_article_text(body)
    assert len(text) == 2003
    assert text.endswith("...")


def test_find_page_image_prefers_og_image():
    html = (FIXTURES / "local_article.html").read_text(encoding="utf-8")
    assert find_page_image(html, ROBBERY_URL) == "https://panorama.example.com/fotos/robo.jpg"

    no_meta = '<article><img src="img/foto.png"></article>'
    assert find_page_image(no_meta, "https://x.example/notas/1") == "https://x.example/notas/img/foto.png"
    assert find_page_image("<p>sin imágenes</p>", "https://x.example/") is None


def test_parse_feed_fills_images_and_page_text(env):
    cm, db = env
    http = FakeHTTP(_pages())
    processor = LocalNewsProcessor(db, cm, http_client=http)
    source = processor.sources()[0]

    items = processor.parse_feed(_pages()[PANORAMA_URL].text, source)

    assert [item["url"] for item in items] == [
        "https://panorama.example.com/salud/hospital",
        ROBBERY_URL,
        "https://panorama.example.com/sociedad/plaza",
    ]
    hospital, robbery, plaza = items
    assert hospital["image_url"] == "https://img.example.com/hospital.jpg"
    assert hospital["category"] == "Salud"
    assert hospital["author"] == "Redacción Panorama"
    assert hospital["summary"] == "El centro de salud atenderá a pacientes de toda la zona."
    assert hospital["source"] == "panorama.example.com"
    assert hospital["published_at"].startswith("2025-10-06T14:30:00")

    assert robbery["category"] == "Policiales"
    assert robbery["image_url"] == "https://panorama.example.com/fotos/robo.jpg"
    assert robbery["content"].startswith("La policía provincial detuvo")
    assert robbery["summary"] == "La policía investiga el hecho."

    assert plaza["image_url"] == "https://img.example.com/plaza.jpg"
    assert plaza["category"] == "Regionales"

    # only the item without a picture needed its page
    assert http.calls == [ROBBERY_URL]


def test_missing_page_keeps_feed_text(env):
    cm, db = env
    http = FakeHTTP(_pages(**{ROBBERY_URL: FakeResponse(status_code=500)}))
    processor = LocalNewsProcessor(db, cm, http_client=http)

    items = processor.parse_feed(_pages()[PANORAMA_URL].text, processor.sources()[0])

    robbery = items[1]
    assert robbery["image_url"] is None
    assert robbery["content"] == "La policía investiga el hecho."


def test_summary_is_cut_at_300_characters(env):
    cm, db = env
    long_text = "x" * 350
    feed = textwrap.dedent(f"""
        <rss version="2.0"><channel><title>t</title>
        <item><title>Nota larga</title><link>https://panorama.example.com/larga</link>
        <description>{long_text} &lt;img src="https://img.example.com/larga.jpg"&gt;</description></item>
        </channel></rss>
    """)
    processor = LocalNewsProcessor(db, cm, http_client=FakeHTTP({}))

    [item] = processor.parse_feed(feed, processor.sources()[0])

    assert item["summary"] == "x" * 300 + "..."
    assert item["content"] == long_text
    assert item["image_url"] == "https://img.example.com/larga.jpg"


def test_ingest_deduplicates_by_url(env):
    cm, db = env
    processor = LocalNewsProcessor(db, cm, http_client=FakeHTTP(_pages()))

    first = processor.ingest()
    assert first["total_news_processed"] == 3
    assert first["total_news_inserted"] == 3

    hospital = next(row for row in db.get_local_news() if row["url"].endswith("/hospital"))
    db.update_row("local_news", hospital["id"], {"is_featured": 1})

    second = processor.ingest()

    assert second["total_news_processed"] == 3
    assert second["total_news_inserted"] == 0
    rows = db.get_local_news()
    assert len(rows) == 3
    again = next(row for row in rows if row["url"].endswith("/hospital"))
    assert again["id"] == hospital["id"]
    assert again["created_at"] == hospital["created_at"]
    assert again["is_featured"] == 1


def test_failing_source_does_not_stop_run(env):
    cm, db = env
    processor = LocalNewsProcessor(db, cm, http_client=FakeHTTP(_pages()))

    result = processor.ingest()

    assert result["success"] is True
    assert result["sources_processed"] == 1
    assert result["total_sources"] == 2
    assert result["batch_mode"] is False
    assert result["has_more"] is False
    assert result["message"] == "Processed 1 sources, inserted 3 local news items"


def test_batch_mode_walks_one_source_at_a_time(env):
    cm, db = env
    http = FakeHTTP(_pages())
    processor = LocalNewsProcessor(db, cm, http_client=http)

    first = processor.ingest(source_index=0, max_per_source=1)

    assert first["batch_mode"] is True
    assert first["current_source_index"] == 0
    assert first["has_more"] is True
    assert first["total_news_processed"] == 1
    assert http.calls == [PANORAMA_URL]

    last = processor.ingest(source_index=1)
    assert last["has_more"] is False
    assert last["sources_processed"] == 0

    with pytest.raises(IndexError):
        processor.ingest(source_index=2)
