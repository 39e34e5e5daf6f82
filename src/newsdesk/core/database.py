"""
Database management for the newsroom SQLite store.

A single database file holds every table the admin backend works with:
ingested RSS articles, AI rewritten articles, local news, advertising,
featured schedule, email campaigns and automation bookkeeping.
"""

import sqlite3
import json
import os
import datetime
import glob
import uuid
from typing import Dict, List, Any, Optional, Iterable
from contextlib import contextmanager
import logging

from .paths import resolve_data_file
from .dates import now_iso

logger = logging.getLogger(__name__)

ARTICLE_TABLES = ('articles', 'ai_generated_articles', 'local_news')

DEFAULT_AD_SETTINGS = {
    'articles_between_ads': ('3', 'Number of articles shown between inline ads'),
    'sidebar_ads_interval': ('5', 'Sidebar ad rotation interval'),
}

_SCHEMA = {
    'rss_sources': '''
        CREATE TABLE IF NOT EXISTS rss_sources (
            id TEXT PRIMARY KEY,
            name TEXT,
            url TEXT NOT NULL UNIQUE,
            category TEXT,
            source_type TEXT NOT NULL DEFAULT 'rss' CHECK(source_type IN ('rss', 'web')),
            scrape_selector TEXT,
            title_selector TEXT,
            description_selector TEXT,
            link_selector TEXT,
            date_selector TEXT,
            base_url TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            updated_at TEXT,
            created_at TEXT NOT NULL
        )
    ''',
    'articles': '''
        CREATE TABLE IF NOT EXISTS articles (
            id TEXT PRIMARY KEY,
            rss_source_id TEXT,
            title TEXT NOT NULL,
            description TEXT,
            content TEXT,
            url TEXT NOT NULL UNIQUE,
            image_url TEXT,
            author TEXT,
            category TEXT,
            published_at TEXT,
            created_at TEXT NOT NULL,
            is_featured INTEGER NOT NULL DEFAULT 0,
            visits INTEGER NOT NULL DEFAULT 0
        )
    ''',
    'ai_generated_articles': '''
        CREATE TABLE IF NOT EXISTS ai_generated_articles (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            content TEXT,
            summary TEXT,
            category TEXT,
            status TEXT NOT NULL DEFAULT 'draft' CHECK(status IN ('draft', 'published')),
            source_rss_id TEXT,
            prompt_used TEXT,
            image_url TEXT,
            image_caption TEXT,
            author TEXT,
            created_at TEXT NOT NULL,
            published_at TEXT,
            updated_at TEXT,
            is_featured INTEGER NOT NULL DEFAULT 0,
            visits INTEGER NOT NULL DEFAULT 0
        )
    ''',
    'local_news': '''
        CREATE TABLE IF NOT EXISTS local_news (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            content TEXT,
            summary TEXT,
            image_url TEXT,
            category TEXT,
            author TEXT,
            url TEXT,
            source TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            is_featured INTEGER NOT NULL DEFAULT 0,
            published_at TEXT,
            created_at TEXT NOT NULL
        )
    ''',
    'advertisements': '''
        CREATE TABLE IF NOT EXISTS advertisements (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            image_url TEXT,
            link_url TEXT,
            placement TEXT NOT NULL,
            width INTEGER,
            height INTEGER,
            is_active INTEGER NOT NULL DEFAULT 1,
            start_date TEXT,
            end_date TEXT,
            sort_order INTEGER NOT NULL DEFAULT 0,
            click_count INTEGER NOT NULL DEFAULT 0,
            impression_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    ''',
    'ad_settings': '''
        CREATE TABLE IF NOT EXISTS ad_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            description TEXT
        )
    ''',
    'modal_toasts': '''
        CREATE TABLE IF NOT EXISTS modal_toasts (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            body TEXT,
            image_url TEXT,
            link_url TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            start_at TEXT,
            end_at TEXT,
            repeatable INTEGER NOT NULL DEFAULT 0,
            show_once INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL
        )
    ''',
    'featured_schedule': '''
        CREATE TABLE IF NOT EXISTS featured_schedule (
            id TEXT PRIMARY KEY,
            content_type TEXT NOT NULL DEFAULT 'article'
                CHECK(content_type IN ('article', 'advertisement', 'video', 'other')),
            content_id TEXT NOT NULL,
            ref_table TEXT,
            start_at TEXT NOT NULL,
            end_at TEXT,
            position TEXT NOT NULL DEFAULT 'home_top',
            priority INTEGER NOT NULL DEFAULT 0,
            metadata TEXT,
            active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT
        )
    ''',
    'email_contacts': '''
        CREATE TABLE IF NOT EXISTS email_contacts (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            name TEXT,
            status TEXT NOT NULL DEFAULT 'active'
                CHECK(status IN ('active', 'unsubscribed', 'bounced')),
            subscribed_at TEXT NOT NULL
        )
    ''',
    'email_templates': '''
        CREATE TABLE IF NOT EXISTS email_templates (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            subject TEXT,
            html_content TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    ''',
    'email_campaigns': '''
        CREATE TABLE IF NOT EXISTS email_campaigns (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            subject TEXT NOT NULL,
            html_content TEXT NOT NULL,
            template_id TEXT,
            status TEXT NOT NULL DEFAULT 'draft'
                CHECK(status IN ('draft', 'sending', 'sent', 'failed')),
            total_recipients INTEGER NOT NULL DEFAULT 0,
            sent_count INTEGER NOT NULL DEFAULT 0,
            delivered_count INTEGER NOT NULL DEFAULT 0,
            opened_count INTEGER NOT NULL DEFAULT 0,
            clicked_count INTEGER NOT NULL DEFAULT 0,
            bounced_count INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    ''',
    'email_sends': '''
        CREATE TABLE IF NOT EXISTS email_sends (
            id TEXT PRIMARY KEY,
            campaign_id TEXT,
            template_id TEXT,
            contact_id TEXT,
            email TEXT NOT NULL,
            status TEXT NOT NULL CHECK(status IN ('sent', 'failed')),
            resend_id TEXT,
            error_message TEXT,
            sent_at TEXT,
            delivered_at TEXT,
            opened_at TEXT,
            clicked_at TEXT,
            bounced_at TEXT
        )
    ''',
    'automation_config': '''
        CREATE TABLE IF NOT EXISTS automation_config (
            id TEXT PRIMARY KEY,
            enabled INTEGER NOT NULL DEFAULT 1,
            schedule_time TEXT NOT NULL DEFAULT '06:00',
            categories TEXT NOT NULL DEFAULT '[]',
            articles_per_category INTEGER NOT NULL DEFAULT 1,
            auto_publish INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    ''',
    'automation_logs': '''
        CREATE TABLE IF NOT EXISTS automation_logs (
            id TEXT PRIMARY KEY,
            status TEXT NOT NULL CHECK(status IN ('running', 'success', 'error')),
            message TEXT,
            articles_generated INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        )
    ''',
    'user_profiles': '''
        CREATE TABLE IF NOT EXISTS user_profiles (
            id TEXT PRIMARY KEY,
            email TEXT,
            last_sign_in TEXT,
            updated_at TEXT
        )
    ''',
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_articles_category ON articles(category, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_ai_articles_status ON ai_generated_articles(status, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_sends_campaign ON email_sends(campaign_id)",
    "CREATE INDEX IF NOT EXISTS idx_featured_window ON featured_schedule(position, start_at)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_local_news_url ON local_news(url)",
]

# Columns added after the first release; applied with ALTER TABLE when missing.
_MIGRATIONS = {
    'articles': {'visits': "INTEGER NOT NULL DEFAULT 0"},
    'ai_generated_articles': {'image_caption': "TEXT", 'updated_at': "TEXT"},
    'local_news': {'url': "TEXT", 'source': "TEXT"},
}


def new_id() -> str:
    """Generate a primary key for a new row."""
    return str(uuid.uuid4())


def row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    return dict(row) if row is not None else None


class DatabaseManager:
    """Owns the newsroom database file, its schema and common queries."""

    def __init__(self, config: Dict[str, Any]):
        """Resolve the database path from config and ensure the schema exists."""
        self.config = config
        self.db_path = str(resolve_data_file(config['database']['path'], ensure_parent=True))
        self._init_database()

    def _init_database(self):
        """Create tables, apply lightweight column migrations, then build indexes."""
        with self.get_connection(row_factory=False) as conn:
            cursor = conn.cursor()
            for ddl in _SCHEMA.values():
                cursor.execute(ddl)
            for table, columns in _MIGRATIONS.items():
                cursor.execute(f"PRAGMA table_info({table})")
                existing = {row[1] for row in cursor.fetchall()}
                for column, decl in columns.items():
                    if column not in existing:
                        cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {decl}")
                        logger.info(f"Added column {table}.{column}")

            for ddl in _INDEXES:
                cursor.execute(ddl)

            for key, (value, description) in DEFAULT_AD_SETTINGS.items():
                cursor.execute(
                    "INSERT OR IGNORE INTO ad_settings (key, value, description) VALUES (?, ?, ?)",
                    (key, value, description),
                )

    @contextmanager
    def get_connection(self, row_factory: bool = True):
        """Context manager for database connections with automatic commit/rollback.

        Example:
            with db.get_connection() as conn:
                conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
                # Auto-commits on success, auto-closes always
        """
        conn = sqlite3.connect(self.db_path)
        if row_factory:
            conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Backups

    def _backup_sqlite(self, src_path: str, dest_path: str) -> None:
        """Create a consistent backup copy of a SQLite database using the backup API."""
        os.makedirs(os.path.dirname(dest_path), exist_ok=True)
        src_conn = sqlite3.connect(src_path)
        try:
            if os.path.exists(dest_path):
                os.remove(dest_path)
            dest_conn = sqlite3.connect(dest_path)
            try:
                src_conn.backup(dest_conn)
            finally:
                dest_conn.close()
        finally:
            src_conn.close()

    def _rotate_backups(self, directory: str, stem: str, keep: int = 3) -> None:
        """Keep only the newest `keep` backups named f"{stem}.YYYYMMDD-HHMMSS.backup.db"."""
        pattern = os.path.join(directory, f"{stem}.*.backup.db")
        files = sorted(glob.glob(pattern))
        if len(files) <= keep:
            return
        for fp in files[0: len(files) - keep]:
            try:
                os.remove(fp)
                logger.info(f"Pruned old backup: {fp}")
            except OSError as e:
                logger.warning(f"Failed to remove old backup {fp}: {e}")

    def backup_database(self, keep: int = 3) -> Optional[str]:
        """Write a timestamped backup next to the database and prune old ones.

        Returns the backup path, or None when the database file does not exist.
        """
        if not os.path.exists(self.db_path):
            return None
        stamp = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
        directory = os.path.dirname(self.db_path)
        stem = os.path.splitext(os.path.basename(self.db_path))[0]
        dest = os.path.join(directory, f"{stem}.{stamp}.backup.db")
        self._backup_sqlite(self.db_path, dest)
        logger.info(f"Backed up database to {dest}")
        self._rotate_backups(directory, stem, keep=keep)
        return dest

    # ------------------------------------------------------------------
    # Generic row helpers

    def _table_columns(self, conn: sqlite3.Connection, table: str) -> List[str]:
        if table not in _SCHEMA:
            raise ValueError(f"Unknown table '{table}'")
        return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]

    def _insert(self, conn: sqlite3.Connection, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        columns = set(self._table_columns(conn, table))
        row = {k: v for k, v in values.items() if k in columns}
        if 'id' in columns and not row.get('id'):
            row['id'] = new_id()
        if 'created_at' in columns and not row.get('created_at'):
            row['created_at'] = now_iso()
        names = ', '.join(row)
        placeholders = ', '.join('?' for _ in row)
        conn.execute(f"INSERT INTO {table} ({names}) VALUES ({placeholders})", list(row.values()))
        return row

    def insert_row(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row, filling ``id``/``created_at`` when absent; returns the stored values."""
        with self.get_connection() as conn:
            return self._insert(conn, table, values)

    def update_row(self, table: str, row_id: str, values: Dict[str, Any], key: str = 'id') -> int:
        """Update the given columns of one row; unknown columns are ignored."""
        with self.get_connection() as conn:
            columns = set(self._table_columns(conn, table))
            fields = {k: v for k, v in values.items() if k in columns and k != key}
            if not fields:
                return 0
            assignments = ', '.join(f"{name} = ?" for name in fields)
            cursor = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE {key} = ?",
                list(fields.values()) + [row_id],
            )
            return cursor.rowcount

    def delete_row(self, table: str, row_id: str) -> int:
        with self.get_connection() as conn:
            self._table_columns(conn, table)
            return conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,)).rowcount

    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            self._table_columns(conn, table)
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
            return row_to_dict(row)

    def fetch_all(self, query: str, params: Iterable[Any] = ()) -> List[Dict[str, Any]]:
        """Run a read query and return rows as dicts."""
        with self.get_connection() as conn:
            return [dict(r) for r in conn.execute(query, list(params)).fetchall()]

    # ------------------------------------------------------------------
    # RSS sources

    def upsert_source(self, source: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or update an RSS source keyed by url; returns the stored row."""
        with self.get_connection() as conn:
            existing = conn.execute("SELECT id FROM rss_sources WHERE url = ?", (source['url'],)).fetchone()
            if existing is None:
                self._insert(conn, 'rss_sources', source)
            else:
                columns = set(self._table_columns(conn, 'rss_sources')) - {'id', 'url', 'created_at', 'updated_at'}
                fields = {k: v for k, v in source.items() if k in columns}
                if fields:
                    assignments = ', '.join(f"{name} = ?" for name in fields)
                    conn.execute(
                        f"UPDATE rss_sources SET {assignments} WHERE id = ?",
                        list(fields.values()) + [existing['id']],
                    )
            row = conn.execute("SELECT * FROM rss_sources WHERE url = ?", (source['url'],)).fetchone()
            return dict(row)

    def get_sources(self, active_only: bool = True) -> List[Dict[str, Any]]:
        query = "SELECT * FROM rss_sources WHERE 1=1"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY created_at, url"
        return self.fetch_all(query)

    def touch_source(self, source_id: str, timestamp: Optional[str] = None) -> None:
        """Record that a source was fetched successfully."""
        self.update_row('rss_sources', source_id, {'updated_at': timestamp or now_iso()})

    # ------------------------------------------------------------------
    # Articles

    def upsert_articles(self, articles: List[Dict[str, Any]]) -> int:
        """Insert articles, updating rows whose url already exists.

        Existing rows keep their id, creation time, featured flag and visits.
        Returns the number of rows written.
        """
        if not articles:
            return 0
        written = 0
        with self.get_connection() as conn:
            for article in articles:
                conn.execute(
                    '''
                    INSERT INTO articles (
                        id, rss_source_id, title, description, content, url,
                        image_url, author, category, published_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(url) DO UPDATE SET
                        rss_source_id = excluded.rss_source_id,
                        title = excluded.title,
                        description = excluded.description,
                        content = excluded.content,
                        image_url = excluded.image_url,
                        author = excluded.author,
                        category = excluded.category,
                        published_at = excluded.published_at
                    ''',
                    (
                        article.get('id') or new_id(),
                        article.get('rss_source_id'),
                        article['title'],
                        article.get('description'),
                        article.get('content'),
                        article['url'],
                        article.get('image_url'),
                        article.get('author'),
                        article.get('category'),
                        article.get('published_at'),
                        article.get('created_at') or now_iso(),
                    ),
                )
                written += 1
        return written

    def get_articles(self, category: Optional[str] = None, limit: int = 200,
                     source_only: bool = False) -> List[Dict[str, Any]]:
        """Newest RSS articles, optionally filtered by category (case-insensitive)."""
        query = "SELECT * FROM articles WHERE 1=1"
        params: List[Any] = []
        if category:
            query += " AND LOWER(category) = LOWER(?)"
            params.append(category)
        if source_only:
            query += " AND rss_source_id IS NOT NULL"
            query += " ORDER BY published_at DESC"
        else:
            query += " ORDER BY created_at DESC"
        query += " LIMIT ?"
        params.append(limit)
        return self.fetch_all(query, params)

    def get_ai_articles(self, category: Optional[str] = None, status: Optional[str] = 'published',
                        limit: int = 200) -> List[Dict[str, Any]]:
        query = "SELECT * FROM ai_generated_articles WHERE 1=1"
        params: List[Any] = []
        if status:
            query += " AND status = ?"
            params.append(status)
        if category:
            query += " AND LOWER(category) = LOWER(?)"
            params.append(category)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        return self.fetch_all(query, params)

    def get_local_news(self, category: Optional[str] = None, active_only: bool = True,
                       limit: int = 200) -> List[Dict[str, Any]]:
        query = "SELECT * FROM local_news WHERE 1=1"
        params: List[Any] = []
        if active_only:
            query += " AND is_active = 1"
        if category:
            query += " AND LOWER(category) = LOWER(?)"
            params.append(category)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        return self.fetch_all(query, params)

    def upsert_local_news(self, items: List[Dict[str, Any]]) -> int:
        """Store scraped local news keyed by url.

        Existing rows keep their id, creation time and editorial flags.
        Returns the number of new rows.
        """
        inserted = 0
        with self.get_connection() as conn:
            for item in items:
                if not item.get('url'):
                    continue
                exists = conn.execute("SELECT 1 FROM local_news WHERE url = ?", (item['url'],)).fetchone()
                conn.execute(
                    '''
                    INSERT INTO local_news (
                        id, title, content, summary, image_url, category, author,
                        url, source, published_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(url) DO UPDATE SET
                        title = excluded.title,
                        content = excluded.content,
                        summary = excluded.summary,
                        image_url = excluded.image_url,
                        category = excluded.category,
                        author = excluded.author,
                        source = excluded.source,
                        published_at = excluded.published_at
                    ''',
                    (
                        new_id(),
                        item['title'],
                        item.get('content'),
                        item.get('summary'),
                        item.get('image_url'),
                        item.get('category'),
                        item.get('author'),
                        item['url'],
                        item.get('source'),
                        item.get('published_at'),
                        now_iso(),
                    ),
                )
                if exists is None:
                    inserted += 1
        return inserted

    def move_to_ai_articles(self, table: str, row_id: str, overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Copy a row into ai_generated_articles and delete the original atomically.

        The new row keeps the original id; if an own article with that id
        already exists it is updated in place. Either both statements take
        effect or neither does.
        """
        if table not in ('articles', 'local_news'):
            raise ValueError(f"Cannot convert rows from '{table}'")
        with self.get_connection() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,)).fetchone()
            if row is None:
                raise LookupError(f"No row '{row_id}' in {table}")
            original = dict(row)
            now = now_iso()
            values = {
                'id': original['id'],
                'title': original.get('title'),
                'content': original.get('content'),
                'summary': original.get('summary') or original.get('description'),
                'category': original.get('category'),
                'status': 'published',
                'image_url': original.get('image_url'),
                'created_at': original.get('created_at') or now,
                'published_at': original.get('published_at') or now,
                'is_featured': original.get('is_featured', 0),
                'visits': original.get('visits', 0),
            }
            values.update(overrides)
            values.update({'source_rss_id': None, 'author': 'IA', 'updated_at': now})
            existing = conn.execute(
                "SELECT created_at FROM ai_generated_articles WHERE id = ?", (row_id,)
            ).fetchone()
            if existing is None:
                stored = self._insert(conn, 'ai_generated_articles', values)
            else:
                columns = set(self._table_columns(conn, 'ai_generated_articles')) - {'id', 'created_at'}
                fields = {k: v for k, v in values.items() if k in columns}
                assignments = ', '.join(f"{name} = ?" for name in fields)
                conn.execute(
                    f"UPDATE ai_generated_articles SET {assignments} WHERE id = ?",
                    list(fields.values()) + [row_id],
                )
                stored = {**fields, 'id': row_id, 'created_at': existing['created_at']}
                logger.info(f"Own article {row_id} already existed; updated it")
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
        logger.info(f"Converted {table}/{row_id} into an own article")
        return stored

    def unfeature_stale(self, today: str) -> int:
        """Clear is_featured on rows whose created_at date differs from *today* (YYYY-MM-DD)."""
        total = 0
        with self.get_connection() as conn:
            for table in ARTICLE_TABLES:
                cursor = conn.execute(
                    f"UPDATE {table} SET is_featured = 0 "
                    "WHERE is_featured = 1 AND substr(created_at, 1, 10) != ?",
                    (today,),
                )
                total += cursor.rowcount
        return total

    # ------------------------------------------------------------------
    # Email

    def get_contacts(self, contact_ids: Optional[List[str]] = None,
                     status: Optional[str] = 'active') -> List[Dict[str, Any]]:
        query = "SELECT * FROM email_contacts WHERE 1=1"
        params: List[Any] = []
        if status:
            query += " AND status = ?"
            params.append(status)
        if contact_ids is not None:
            if not contact_ids:
                return []
            query += f" AND id IN ({','.join('?' * len(contact_ids))})"
            params.extend(contact_ids)
        query += " ORDER BY subscribed_at DESC"
        return self.fetch_all(query, params)

    def add_contacts(self, contacts: List[Dict[str, Any]]) -> int:
        """Insert contacts, ignoring emails already present. Returns rows inserted."""
        inserted = 0
        with self.get_connection() as conn:
            for contact in contacts:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO email_contacts (id, email, name, status, subscribed_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        new_id(),
                        contact['email'],
                        contact.get('name'),
                        contact.get('status', 'active'),
                        contact.get('subscribed_at') or now_iso(),
                    ),
                )
                inserted += cursor.rowcount
        return inserted

    def get_campaign_sends(self, campaign_id: str) -> List[Dict[str, Any]]:
        return self.fetch_all(
            "SELECT * FROM email_sends WHERE campaign_id = ? ORDER BY sent_at DESC",
            (campaign_id,),
        )

    def campaign_send_counts(self, campaign_id: str) -> Dict[str, int]:
        """Aggregate delivery counters for a campaign from its sends."""
        with self.get_connection() as conn:
            row = conn.execute(
                '''
                SELECT
                    SUM(CASE WHEN status = 'sent' THEN 1 ELSE 0 END) AS sent_count,
                    COUNT(delivered_at) AS delivered_count,
                    COUNT(opened_at) AS opened_count,
                    COUNT(clicked_at) AS clicked_count,
                    COUNT(bounced_at) AS bounced_count
                FROM email_sends WHERE campaign_id = ?
                ''',
                (campaign_id,),
            ).fetchone()
        return {key: int(row[key] or 0) for key in row.keys()}

    # ------------------------------------------------------------------
    # Automation and profiles

    def get_latest_automation_config(self) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(
            "SELECT * FROM automation_config WHERE enabled = 1 ORDER BY created_at DESC LIMIT 1"
        )
        if not rows:
            return None
        cfg = rows[0]
        try:
            cfg['categories'] = json.loads(cfg.get('categories') or '[]')
        except json.JSONDecodeError:
            logger.warning("automation_config.categories is not valid JSON; ignoring")
            cfg['categories'] = []
        return cfg

    def log_automation(self, status: str, message: str, articles_generated: int = 0) -> Dict[str, Any]:
        return self.insert_row('automation_logs', {
            'status': status,
            'message': message,
            'articles_generated': articles_generated,
        })

    def upsert_user_profile(self, user_id: str, email: Optional[str], last_sign_in: Optional[str] = None) -> None:
        now = now_iso()
        with self.get_connection() as conn:
            conn.execute(
                '''
                INSERT INTO user_profiles (id, email, last_sign_in, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = excluded.email,
                    last_sign_in = excluded.last_sign_in,
                    updated_at = excluded.updated_at
                ''',
                (user_id, email, last_sign_in or now, now),
            )

    def table_counts(self) -> Dict[str, int]:
        """Row counts per table, used by the status command."""
        with self.get_connection(row_factory=False) as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in _SCHEMA
            }
