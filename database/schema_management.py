import json
import logging
import os
import sqlite3
from typing import Optional

from .core import db_connection

DEFAULT_FILTERS = [
    # (name, filter_type, pattern, action, priority)
    ('Prefer 1080p', 'resolution', '1080p', 'prefer', 10),
    ('Prefer SubsPlease', 'group', 'SubsPlease', 'prefer', 5),
    ('Exclude batches', 'title_exclude', 'batch', 'exclude', 100),
]

def create_tables(conn: sqlite3.Connection):
    cursor = conn.cursor()
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS shows (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL,
            alternate TEXT NOT NULL,
            season INTEGER NOT NULL DEFAULT 1,
            source TEXT NOT NULL DEFAULT 'subsplease',
            quality TEXT NOT NULL DEFAULT '1080p',
            download_path TEXT,
            last_downloaded_episode INTEGER DEFAULT 0,
            last_downloaded_hash TEXT,
            is_tracked INTEGER NOT NULL DEFAULT 1,
            latest_episode TEXT,
            next_air_date TEXT,
            created_at TEXT DEFAULT (datetime('now')),
            updated_at TEXT DEFAULT (datetime('now'))
        )
    ''')
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS rss_config (
            id INTEGER PRIMARY KEY,
            poll_times_per_day INTEGER NOT NULL DEFAULT 4,
            last_poll_time TEXT,
            enabled INTEGER NOT NULL DEFAULT 1
        )
    ''')
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS download_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            show_id INTEGER NOT NULL,
            episode INTEGER NOT NULL,
            info_hash TEXT NOT NULL UNIQUE,
            torrent_url TEXT,
            downloaded_at TEXT DEFAULT (datetime('now')),
            FOREIGN KEY (show_id) REFERENCES shows(id) ON DELETE CASCADE
        )
    ''')
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS filter_rules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            filter_type TEXT NOT NULL,
            pattern TEXT NOT NULL,
            action TEXT NOT NULL DEFAULT 'prefer',
            priority INTEGER NOT NULL DEFAULT 0,
            is_global INTEGER NOT NULL DEFAULT 1,
            enabled INTEGER NOT NULL DEFAULT 1,
            created_at TEXT DEFAULT (datetime('now'))
        )
    ''')
    # A row either toggles a global rule or carries its own rule, never both
    cursor.execute('''
        CREATE TABLE IF NOT EXISTS show_filter_overrides (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            show_id INTEGER NOT NULL,
            filter_rule_id INTEGER,
            filter_type TEXT,
            pattern TEXT,
            action TEXT NOT NULL DEFAULT 'prefer',
            enabled INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY (show_id) REFERENCES shows(id) ON DELETE CASCADE,
            FOREIGN KEY (filter_rule_id) REFERENCES filter_rules(id) ON DELETE CASCADE,
            CHECK (
                (filter_rule_id IS NOT NULL AND filter_type IS NULL AND pattern IS NULL)
                OR (filter_rule_id IS NULL AND filter_type IS NOT NULL AND pattern IS NOT NULL)
            )
        )
    ''')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_download_history_show ON download_history(show_id)')
    cursor.execute('CREATE INDEX IF NOT EXISTS idx_show_filter_overrides_show ON show_filter_overrides(show_id)')

    cursor.execute('INSERT OR IGNORE INTO rss_config (id, poll_times_per_day, enabled) VALUES (1, 4, 1)')

def seed_default_filters(conn: sqlite3.Connection):
    count = conn.execute('SELECT COUNT(*) FROM filter_rules').fetchone()[0]
    if count > 0:
        return

    conn.executemany('''
        INSERT INTO filter_rules (name, filter_type, pattern, action, priority, is_global, enabled)
        VALUES (?, ?, ?, ?, ?, 1, 1)
    ''', DEFAULT_FILTERS)
    logging.info(f"Seeded {len(DEFAULT_FILTERS)} default filter rules")

def initialize_database(conn: Optional[sqlite3.Connection] = None):
    with db_connection(conn) as conn:
        create_tables(conn)
        seed_default_filters(conn)
        conn.commit()
    logging.info("Database schema verified")

def _load_legacy_json(path):
    if not os.path.exists(path):
        return {}
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.error(f"Could not read legacy file {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logging.warning(f"Ignoring legacy file {path}: expected an object keyed by show id")
        return {}

    entries = {}
    for key, value in data.items():
        try:
            entries[int(key)] = value
        except (TypeError, ValueError):
            logging.warning(f"Ignoring legacy entry with non-numeric id '{key}' in {path}")
    return entries

def migrate_from_json_if_needed(conn: Optional[sqlite3.Connection] = None, base_dir: str = '.') -> int:
    """
    Import the pre-database tracked_shows.json / tracked_data.json files.

    Entries from both files are merged by show id and upserted into `shows`.
    The files are renamed to .bak afterwards so the import runs once. Returns the
    number of shows migrated.
    """
    shows_path = os.path.join(base_dir, 'tracked_shows.json')
    data_path = os.path.join(base_dir, 'tracked_data.json')

    if not os.path.exists(shows_path) and not os.path.exists(data_path):
        logging.debug("No JSON files to migrate")
        return 0

    logging.info("Starting migration from JSON files...")
    table_entries = _load_legacy_json(shows_path)
    data_entries = _load_legacy_json(data_path)

    migrated_count = 0
    with db_connection(conn) as conn:
        for show_id in sorted(set(table_entries) | set(data_entries)):
            table_entry = table_entries.get(show_id) or {}
            data_entry = data_entries.get(show_id) or {}

            title = data_entry.get('title') or table_entry.get('title') or ''
            conn.execute('''
                INSERT INTO shows (id, title, alternate, season, source, quality, is_tracked, latest_episode, next_air_date)
                VALUES (?, ?, ?, ?, ?, '1080p', ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    title = excluded.title,
                    alternate = excluded.alternate,
                    season = excluded.season,
                    source = excluded.source,
                    is_tracked = excluded.is_tracked,
                    latest_episode = excluded.latest_episode,
                    next_air_date = excluded.next_air_date,
                    updated_at = datetime('now')
            ''', (
                show_id,
                title,
                data_entry.get('alternate') or title,
                int(data_entry.get('season') or 1),
                data_entry.get('source') or 'subsplease',
                1 if table_entry.get('is_tracked', True) else 0,
                table_entry.get('latest_episode'),
                table_entry.get('next_air_date'),
            ))
            migrated_count += 1
        conn.commit()

    logging.info(f"Migrated {migrated_count} shows from JSON files")

    for path in (shows_path, data_path):
        if os.path.exists(path):
            os.replace(path, path + '.bak')
            logging.info(f"Renamed {os.path.basename(path)} to {os.path.basename(path)}.bak")

    return migrated_count
