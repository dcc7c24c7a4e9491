import logging
import sqlite3
from typing import List, Optional

from .core import db_connection, retry_on_db_lock
from .models import Show

SHOW_COLUMNS = '''
    id, title, alternate, season, source, quality, download_path,
    last_downloaded_episode, last_downloaded_hash, is_tracked,
    latest_episode, next_air_date
'''

def row_to_show(row: sqlite3.Row) -> Show:
    return Show(
        id=row['id'],
        title=row['title'],
        alternate=row['alternate'] or '',
        season=row['season'] if row['season'] is not None else 1,
        source=row['source'] or 'subsplease',
        quality=row['quality'] or '',
        download_path=row['download_path'],
        last_downloaded_episode=row['last_downloaded_episode'] or 0,
        last_downloaded_hash=row['last_downloaded_hash'],
        is_tracked=bool(row['is_tracked']),
        latest_episode=row['latest_episode'],
        next_air_date=row['next_air_date'],
    )

def get_all_shows(conn: Optional[sqlite3.Connection] = None) -> List[Show]:
    with db_connection(conn) as conn:
        rows = conn.execute(f'SELECT {SHOW_COLUMNS} FROM shows ORDER BY title').fetchall()
    return [row_to_show(row) for row in rows]

def get_tracked_shows(conn: Optional[sqlite3.Connection] = None) -> List[Show]:
    with db_connection(conn) as conn:
        rows = conn.execute(f'SELECT {SHOW_COLUMNS} FROM shows WHERE is_tracked = 1 ORDER BY title').fetchall()
    return [row_to_show(row) for row in rows]

def get_show(show_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[Show]:
    with db_connection(conn) as conn:
        row = conn.execute(f'SELECT {SHOW_COLUMNS} FROM shows WHERE id = ?', (show_id,)).fetchone()
    return row_to_show(row) if row else None

@retry_on_db_lock()
def insert_show(show: Show, conn: Optional[sqlite3.Connection] = None) -> int:
    """Insert a show, keeping its id when one is set. Returns the row id."""
    with db_connection(conn) as conn:
        cursor = conn.execute('''
            INSERT INTO shows (id, title, alternate, season, source, quality, download_path,
                               last_downloaded_episode, last_downloaded_hash, is_tracked,
                               latest_episode, next_air_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ''', (
            show.id or None,
            show.title,
            show.alternate or show.title,
            show.season,
            show.source,
            show.quality,
            show.download_path,
            show.last_downloaded_episode,
            show.last_downloaded_hash,
            1 if show.is_tracked else 0,
            show.latest_episode,
            show.next_air_date,
        ))
        conn.commit()
        logging.info(f"Added show '{show.title}' (id {cursor.lastrowid})")
        return cursor.lastrowid

@retry_on_db_lock()
def update_show(show: Show, conn: Optional[sqlite3.Connection] = None) -> bool:
    """Update the user-editable fields of a show. The download watermark is left alone."""
    with db_connection(conn) as conn:
        cursor = conn.execute('''
            UPDATE shows SET
                title = ?,
                alternate = ?,
                season = ?,
                source = ?,
                quality = ?,
                download_path = ?,
                is_tracked = ?,
                latest_episode = ?,
                next_air_date = ?,
                updated_at = datetime('now')
            WHERE id = ?
        ''', (
            show.title,
            show.alternate or show.title,
            show.season,
            show.source,
            show.quality,
            show.download_path,
            1 if show.is_tracked else 0,
            show.latest_episode,
            show.next_air_date,
            show.id,
        ))
        conn.commit()
        return cursor.rowcount > 0

@retry_on_db_lock()
def delete_show(show_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
    """Delete a show. Its download history and filter overrides go with it."""
    with db_connection(conn) as conn:
        cursor = conn.execute('DELETE FROM shows WHERE id = ?', (show_id,))
        conn.commit()
        return cursor.rowcount > 0

@retry_on_db_lock()
def update_last_downloaded(show_id: int, episode: int, info_hash: str, conn: Optional[sqlite3.Connection] = None) -> bool:
    """
    Advance the show's download watermark to `episode`.

    The watermark only moves forward: returns False and changes nothing when
    `episode` is not greater than the stored value.
    """
    with db_connection(conn) as conn:
        cursor = conn.execute('''
            UPDATE shows SET
                last_downloaded_episode = ?,
                last_downloaded_hash = ?,
                updated_at = datetime('now')
            WHERE id = ? AND COALESCE(last_downloaded_episode, 0) < ?
        ''', (episode, info_hash, show_id, episode))
        conn.commit()
        advanced = cursor.rowcount > 0
    if not advanced:
        logging.debug(f"Watermark for show {show_id} not advanced to episode {episode}")
    return advanced
