from __future__ import annotations

import datetime
import json
from pathlib import Path
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from newsdesk.commands import automation, generate  # noqa: E402
from newsdesk.core.command_context import CommandContext  # noqa: E402
from newsdesk.processors.article_cache import ArticlesCache  # noqa: E402


class FakeWriter:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.rewritten = []

    def rewrite_article(self, article):
        if article["title"] in self.fail_on:
            raise RuntimeError("quota exceeded")
        self.rewritten.append(article["id"])
        return {
            "title": f"Reescrito: {article['title']}",
            "summary": "Entradilla de prueba.",
            "content": "<p>Cuerpo</p>",
            "prompt_used": "prompt",
        }

    def complete(self, prompt, system_prompt=None, model=None):
        return {"content": f"eco: {prompt}", "model": model or "fake", "usage": None}


class FakeFeedProcessor:
    def __init__(self, error=None):
        self.error = error
        self.calls = 0

    def ingest(self):
        self.calls += 1
        if self.error:
            raise self.error
        return {"message": "Processed 0 sources, stored 0 articles"}


class FakeImages:
    def image_for_article(self, title, category, description=None):
        return {"image_url": "https://p.example/1.jpg", "image_caption": "Foto: Ana / Pexels"}


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.setenv("NEWSDESK_DATA_DIR", str(tmp_path / "data"))
    return str(tmp_path / "config" / "config.yaml")


@pytest.fixture
def db(config_path):
    db = CommandContext(config_path).db
    db.upsert_articles([
        {"id": "d1", "rss_source_id": "s1", "title": "Gol", "url": "https://a.example/d1", "category": "Deportes",
         "published_at": "2025-10-06T10:00:00+00:00"},
        {"id": "d2", "rss_source_id": "s1", "title": "Fichaje", "url": "https://a.example/d2", "category": "Deportes",
         "published_at": "2025-10-05T10:00:00+00:00"},
        {"id": "e1", "rss_source_id": "s1", "title": "Dólar", "url": "https://a.example/e1", "category": "Economía",
         "published_at": "2025-10-06T09:00:00+00:00", "image_url": "https://img/e1.jpg"},
    ])
    return db


@pytest.mark.parametrize(
    "schedule, hour, minute, expected",
    [
        ("06:00", 6, 0, True),
        ("06:00", 6, 5, True),
        ("06:00", 5, 55, True),
        ("06:00", 6, 6, False),
        ("23:58", 0, 2, True),
        ("00:01", 23, 57, True),
        ("12:00", 0, 0, False),
    ],
)
def test_is_due_window_wraps_midnight(schedule, hour, minute, expected):
    now = datetime.datetime(2025, 10, 6, hour, minute)
    assert automation.is_due(schedule, now) is expected


def test_is_due_rejects_bad_times():
    with pytest.raises(ValueError):
        automation.is_due("25:00", datetime.datetime(2025, 10, 6))
    with pytest.raises(ValueError):
        automation.is_due("6am", datetime.datetime(2025, 10, 6))


def test_configure_validates_and_stores(config_path, db):
    row = automation.configure(config_path, "07:30", ["Deportes", " ", "Economía"], articles_per_category=2)
    assert json.loads(row["categories"]) == ["Deportes", "Economía"]
    assert automation.get_config(config_path)["categories"] == ["Deportes", "Economía"]

    with pytest.raises(ValueError):
        automation.configure(config_path, "7h", ["Deportes"])
    with pytest.raises(ValueError):
        automation.configure(config_path, "07:30", [" "])
    with pytest.raises(ValueError):
        automation.configure(config_path, "07:30", ["Deportes"], articles_per_category=0)


def test_run_without_configuration(config_path, db):
    result = automation.run(config_path)
    assert result["executed"] is False
    assert result["message"] == "No active automation configuration"


def test_run_not_due_does_nothing(config_path, db):
    automation.configure(config_path, "06:00", ["Deportes"])
    writer = FakeWriter()

    result = automation.run(config_path, now=datetime.datetime(2025, 10, 6, 9, 0), writer=writer,
                            feed_processor=FakeFeedProcessor())

    assert result["executed"] is False
    assert result["message"] == "Not due yet. Scheduled for 06:00"
    assert writer.rewritten == []
    assert db.fetch_all("SELECT * FROM automation_logs") == []


def test_run_generates_per_category_and_logs(config_path, db):
    automation.configure(config_path, "06:00", ["Deportes", "Economía", "Salud"], articles_per_category=1,
                         auto_publish=True)
    writer = FakeWriter()
    processor = FakeFeedProcessor()

    result = automation.run(config_path, now=datetime.datetime(2025, 10, 6, 6, 3), writer=writer,
                            feed_processor=processor)

    assert result["executed"] is True
    assert result["articles_generated"] == 2
    assert result["errors"] == ["No RSS articles available in Salud"]
    assert processor.calls == 1
    assert writer.rewritten == ["d1", "e1"]

    stored = db.get_ai_articles(status="published")
    assert {row["title"] for row in stored} == {"Reescrito: Gol", "Reescrito: Dólar"}
    assert all(row["published_at"] for row in stored)

    logs = [row["status"] for row in db.fetch_all("SELECT status FROM automation_logs ORDER BY rowid")]
    assert logs == ["running", "error"]


def test_run_forced_survives_ingest_and_article_failures(config_path, db):
    automation.configure(config_path, "06:00", ["Deportes"], articles_per_category=2)
    writer = FakeWriter(fail_on={"Gol"})

    result = automation.run(config_path, force=True, now=datetime.datetime(2025, 10, 6, 15, 0), writer=writer,
                            feed_processor=FakeFeedProcessor(error=RuntimeError("network down")))

    assert result["articles_generated"] == 1
    assert len(result["errors"]) == 1
    assert "quota exceeded" in result["errors"][0]
    assert db.get_ai_articles(status="draft")[0]["title"] == "Reescrito: Fichaje"


def test_run_success_log(config_path, db):
    automation.configure(config_path, "06:00", ["Economía"])

    result = automation.run(config_path, force=True, writer=FakeWriter(), feed_processor=FakeFeedProcessor())

    assert result["message"] == "1 articles generated successfully"
    last = db.fetch_all("SELECT status, articles_generated FROM automation_logs ORDER BY rowid DESC LIMIT 1")[0]
    assert last == {"status": "success", "articles_generated": 1}


def test_generate_run_rewrites_single_article(config_path, db):
    cache = ArticlesCache()
    cache.set(None, 1, 20, [], 0)

    stored = generate.run(config_path, "d1", publish=True, with_image=True, writer=FakeWriter(),
                          image_client=FakeImages(), cache=cache)

    assert stored["status"] == "published"
    assert stored["category"] == "Deportes"
    assert stored["image_url"] == "https://p.example/1.jpg"
    assert stored["image_caption"] == "Foto: Ana / Pexels"
    assert stored["author"] == "La Voz del Norte Diario"
    assert len(cache) == 0
    assert db.get_row("articles", "d1") is not None


def test_generate_run_keeps_existing_image_and_validates(config_path, db):
    stored = generate.run(config_path, "e1", writer=FakeWriter(), image_client=FakeImages(), cache=ArticlesCache())
    assert stored["status"] == "draft"
    assert stored["image_url"] == "https://img/e1.jpg"
    assert stored["published_at"] is None

    with pytest.raises(LookupError):
        generate.run(config_path, "missing", writer=FakeWriter())
    with pytest.raises(ValueError):
        generate.run(config_path, "d1", table="ai_generated_articles", writer=FakeWriter())


def test_generate_complete(config_path, db):
    result = generate.complete(config_path, "hola", writer=FakeWriter())
    assert result["content"] == "eco: hola"
    with pytest.raises(ValueError):
        generate.complete(config_path, "  ", writer=FakeWriter())
