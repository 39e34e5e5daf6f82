"""Tests for the SQLite store."""

from __future__ import annotations

from pathlib import Path
import sqlite3
import sys

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from newsdesk.core.database import DatabaseManager  # noqa: E402


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setenv("NEWSDESK_DATA_DIR", str(tmp_path))
    return DatabaseManager({"database": {"path": "test.db"}})


def _article(url: str, **extra):
    row = {"title": "Título", "url": url, "category": "Nacionales", "content": "cuerpo"}
    row.update(extra)
    return row


def test_database_path_resolves_under_data_dir(db, tmp_path):
    assert Path(db.db_path) == tmp_path / "test.db"
    assert Path(db.db_path).exists()


def test_ad_settings_are_seeded_once(db):
    rows = db.fetch_all("SELECT key, value FROM ad_settings ORDER BY key")
    assert rows == [
        {"key": "articles_between_ads", "value": "3"},
        {"key": "sidebar_ads_interval", "value": "5"},
    ]
    db.update_row("ad_settings", "articles_between_ads", {"value": "7"}, key="key")
    DatabaseManager(db.config)
    assert db.fetch_all("SELECT value FROM ad_settings WHERE key = 'articles_between_ads'") == [{"value": "7"}]


def test_upsert_articles_keeps_identity_and_featured_flag(db):
    assert db.upsert_articles([_article("https://a.example/1")]) == 1
    original = db.get_articles()[0]
    db.update_row("articles", original["id"], {"is_featured": 1, "visits": 9})

    db.upsert_articles([_article("https://a.example/1", title="Título corregido")])

    [row] = db.get_articles()
    assert row["id"] == original["id"]
    assert row["created_at"] == original["created_at"]
    assert row["title"] == "Título corregido"
    assert row["is_featured"] == 1
    assert row["visits"] == 9


def test_get_articles_filters_category_case_insensitively(db):
    db.upsert_articles([
        _article("https://a.example/1", category="Deportes"),
        _article("https://a.example/2", category="Economía"),
    ])
    assert [r["url"] for r in db.get_articles(category="deportes")] == ["https://a.example/1"]


def test_unknown_table_is_rejected(db):
    with pytest.raises(ValueError):
        db.insert_row("users; DROP TABLE articles", {"id": "x"})
    with pytest.raises(ValueError):
        db.get_row("nope", "x")


def test_insert_row_ignores_unknown_columns(db):
    row = db.insert_row("email_templates", {"name": "Bienvenida", "html_content": "<p>Hola</p>", "bogus": 1})
    assert "bogus" not in row
    stored = db.get_row("email_templates", row["id"])
    assert stored["name"] == "Bienvenida"
    assert stored["created_at"]


def test_local_news_url_column_added_to_old_databases(tmp_path, monkeypatch):
    monkeypatch.setenv("NEWSDESK_DATA_DIR", str(tmp_path))
    with sqlite3.connect(tmp_path / "old.db") as conn:
        conn.execute(
            "CREATE TABLE local_news (id TEXT PRIMARY KEY, title TEXT NOT NULL, content TEXT, "
            "summary TEXT, image_url TEXT, category TEXT, author TEXT, is_active INTEGER NOT NULL DEFAULT 1, "
            "is_featured INTEGER NOT NULL DEFAULT 0, published_at TEXT, created_at TEXT NOT NULL)"
        )
        conn.execute("INSERT INTO local_news (id, title, created_at) VALUES ('n1', 'Vieja', '2025-01-01')")

    db = DatabaseManager({"database": {"path": "old.db"}})

    item = {"title": "Nueva", "url": "https://local.example/1", "source": "local.example"}
    assert db.upsert_local_news([item]) == 1
    assert db.upsert_local_news([{**item, "title": "Nueva corregida"}]) == 0
    rows = {row["id"]: row for row in db.get_local_news()}
    assert rows["n1"]["url"] is None
    [fresh] = [row for row in rows.values() if row["url"]]
    assert fresh["title"] == "Nueva corregida"
    assert fresh["source"] == "local.example"


def test_upsert_local_news_skips_items_without_url(db):
    assert db.upsert_local_news([{"title": "Sin enlace"}]) == 0
    assert db.get_local_news() == []


def test_move_to_ai_articles_converts_and_deletes(db):
    db.upsert_articles([_article("https://a.example/1", description="bajada", image_url="https://img/x.jpg")])
    original = db.get_articles()[0]

    stored = db.move_to_ai_articles("articles", original["id"], {"title": "Nuevo título"})

    assert stored["id"] == original["id"]
    assert db.get_articles() == []
    converted = db.get_row("ai_generated_articles", original["id"])
    assert converted["title"] == "Nuevo título"
    assert converted["summary"] == "bajada"
    assert converted["status"] == "published"
    assert converted["author"] == "IA"
    assert converted["source_rss_id"] is None


def test_move_to_ai_articles_is_atomic(db):
    db.upsert_articles([_article("https://a.example/1")])
    original = db.get_articles()[0]

    with pytest.raises(sqlite3.IntegrityError):
        db.move_to_ai_articles("articles", original["id"], {"status": "archived"})

    assert db.get_row("articles", original["id"]) is not None
    assert db.get_row("ai_generated_articles", original["id"]) is None


def test_move_to_ai_articles_updates_existing_own_article(db):
    db.upsert_articles([_article("https://a.example/1", description="bajada")])
    original = db.get_articles()[0]
    db.insert_row("ai_generated_articles", {
        "id": original["id"], "title": "Versión previa", "content": "viejo", "status": "draft",
        "created_at": "2025-01-01T00:00:00+00:00",
    })

    stored = db.move_to_ai_articles("articles", original["id"], {"title": "Nuevo título"})

    assert stored["created_at"] == "2025-01-01T00:00:00+00:00"
    assert db.get_articles() == []
    [converted] = db.get_ai_articles(status=None)
    assert converted["id"] == original["id"]
    assert converted["title"] == "Nuevo título"
    assert converted["status"] == "published"
    assert converted["author"] == "IA"


def test_move_to_ai_articles_missing_row(db):
    with pytest.raises(LookupError):
        db.move_to_ai_articles("articles", "missing", {})
    with pytest.raises(ValueError):
        db.move_to_ai_articles("ai_generated_articles", "x", {})


def test_unfeature_stale_spans_all_article_tables(db):
    db.upsert_articles([
        _article("https://a.example/old", created_at="2025-10-01T10:00:00+00:00"),
        _article("https://a.example/new", created_at="2025-10-06T10:00:00+00:00"),
    ])
    for row in db.get_articles():
        db.update_row("articles", row["id"], {"is_featured": 1})
    db.insert_row("local_news", {"title": "Local", "is_featured": 1, "created_at": "2025-09-30T08:00:00+00:00"})

    assert db.unfeature_stale("2025-10-06") == 2
    featured = db.fetch_all("SELECT url FROM articles WHERE is_featured = 1")
    assert featured == [{"url": "https://a.example/new"}]


def test_add_contacts_ignores_duplicates(db):
    assert db.add_contacts([{"email": "ana@example.com", "name": "Ana"}, {"email": "luis@example.com"}]) == 2
    assert db.add_contacts([{"email": "ana@example.com", "name": "Otra"}]) == 0
    assert len(db.get_contacts()) == 2

    luis = next(c for c in db.get_contacts() if c["email"] == "luis@example.com")
    db.update_row("email_contacts", luis["id"], {"status": "unsubscribed"})
    assert [c["email"] for c in db.get_contacts()] == ["ana@example.com"]
    assert db.get_contacts(contact_ids=[]) == []
    assert len(db.get_contacts(status=None)) == 2


def test_campaign_send_counts(db):
    campaign = db.insert_row("email_campaigns", {"name": "n", "subject": "s", "html_content": "<p>x</p>"})
    for status, delivered in (("sent", "2025-10-06T10:00:00+00:00"), ("sent", None), ("failed", None)):
        db.insert_row("email_sends", {
            "campaign_id": campaign["id"],
            "email": "x@example.com",
            "status": status,
            "delivered_at": delivered,
        })

    counts = db.campaign_send_counts(campaign["id"])

    assert counts == {
        "sent_count": 2,
        "delivered_count": 1,
        "opened_count": 0,
        "clicked_count": 0,
        "bounced_count": 0,
    }
    assert db.campaign_send_counts("missing")["sent_count"] == 0


def test_latest_automation_config_decodes_categories(db):
    assert db.get_latest_automation_config() is None
    db.insert_row("automation_config", {
        "schedule_time": "07:30",
        "categories": '["Deportes", "Economía"]',
        "created_at": "2025-10-01T00:00:00+00:00",
    })
    db.insert_row("automation_config", {
        "schedule_time": "08:00",
        "categories": "not json",
        "created_at": "2025-10-02T00:00:00+00:00",
    })

    cfg = db.get_latest_automation_config()
    assert cfg["schedule_time"] == "08:00"
    assert cfg["categories"] == []


def test_upsert_user_profile(db):
    db.upsert_user_profile("u1", "a@example.com", "2025-10-06T10:00:00+00:00")
    db.upsert_user_profile("u1", "b@example.com")
    [profile] = db.fetch_all("SELECT * FROM user_profiles")
    assert profile["email"] == "b@example.com"


def test_backup_database_and_rotation(db, tmp_path):
    backup = db.backup_database()
    assert backup is not None and Path(backup).exists()

    for stamp in ("20240101-000000", "20240102-000000", "20240103-000000"):
        (tmp_path / f"test.{stamp}.backup.db").write_bytes(b"")
    db._rotate_backups(str(tmp_path), "test", keep=2)

    remaining = sorted(p.name for p in tmp_path.glob("test.*.backup.db"))
    assert len(remaining) == 2
    assert remaining[-1] == Path(backup).name


def test_table_counts_lists_every_table(db):
    counts = db.table_counts()
    assert counts["articles"] == 0
    assert counts["ad_settings"] == 2
    assert "featured_schedule" in counts
