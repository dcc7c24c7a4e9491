"""
Ledger of dispatched releases.

The UNIQUE constraint on info_hash is what makes recording a download
at-most-once: a second insert of the same fingerprint fails with
DuplicateDownloadError instead of creating another row, whichever process or
manual sync gets there second.
"""
import logging
import sqlite3
from typing import List, Optional

from .core import db_connection, retry_on_db_lock
from .models import DownloadRecord

class DuplicateDownloadError(Exception):
    """Raised when a release fingerprint is already in the download history"""
    def __init__(self, info_hash: str):
        super().__init__(f"Release already recorded: {info_hash}")
        self.info_hash = info_hash

def row_to_record(row: sqlite3.Row) -> DownloadRecord:
    return DownloadRecord(
        id=row['id'],
        show_id=row['show_id'],
        episode=row['episode'],
        info_hash=row['info_hash'],
        torrent_url=row['torrent_url'],
        downloaded_at=row['downloaded_at'],
    )

def is_already_downloaded(info_hash: str, conn: Optional[sqlite3.Connection] = None) -> bool:
    with db_connection(conn) as conn:
        row = conn.execute('SELECT 1 FROM download_history WHERE info_hash = ? LIMIT 1', (info_hash,)).fetchone()
    return row is not None

@retry_on_db_lock()
def record_download(show_id: int, episode: int, info_hash: str, torrent_url: Optional[str],
                    conn: Optional[sqlite3.Connection] = None) -> int:
    """Append a ledger row and return its id. Raises DuplicateDownloadError if the fingerprint exists."""
    with db_connection(conn) as conn:
        try:
            cursor = conn.execute('''
                INSERT INTO download_history (show_id, episode, info_hash, torrent_url)
                VALUES (?, ?, ?, ?)
            ''', (show_id, episode, info_hash, torrent_url))
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            if 'UNIQUE' in str(e).upper():
                raise DuplicateDownloadError(info_hash) from e
            raise
        logging.debug(f"Recorded download of show {show_id} episode {episode} ({info_hash})")
        return cursor.lastrowid

def get_show_history(show_id: int, conn: Optional[sqlite3.Connection] = None) -> List[DownloadRecord]:
    with db_connection(conn) as conn:
        rows = conn.execute('''
            SELECT id, show_id, episode, info_hash, torrent_url, downloaded_at
            FROM download_history
            WHERE show_id = ?
            ORDER BY episode DESC, id DESC
        ''', (show_id,)).fetchall()
    return [row_to_record(row) for row in rows]

def get_all_history(limit: int = 100, conn: Optional[sqlite3.Connection] = None) -> List[DownloadRecord]:
    with db_connection(conn) as conn:
        rows = conn.execute('''
            SELECT id, show_id, episode, info_hash, torrent_url, downloaded_at
            FROM download_history
            ORDER BY downloaded_at DESC, id DESC
            LIMIT ?
        ''', (limit,)).fetchall()
    return [row_to_record(row) for row in rows]
