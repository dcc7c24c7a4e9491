import logging
from typing import Any, Dict, Optional, Set

import requests

from .base import (
    DEFAULT_DOWNLOAD_ROOT,
    DownloadClient,
    DownloadClientAuthError,
    DownloadClientError,
    DownloadClientUnavailableError,
)

SESSION_HEADER = 'X-Transmission-Session-Id'

class TransmissionClient(DownloadClient):
    """
    Transmission RPC client.

    Transmission answers the first call of a session with 409 and a fresh
    X-Transmission-Session-Id header; the id is captured and the call repeated once.
    """

    def __init__(self, http, url: str, username: Optional[str] = None, password: Optional[str] = None,
                 download_root: str = DEFAULT_DOWNLOAD_ROOT, timeout: int = 30):
        super().__init__(download_root)
        self.http = http
        self.url = url
        self.auth = (username, password) if username else None
        self.timeout = timeout
        self.session_id: Optional[str] = None

    def _rpc(self, method: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = {'method': method, 'arguments': arguments or {}}

        for attempt in range(2):
            headers = {SESSION_HEADER: self.session_id} if self.session_id else {}
            try:
                response = self.http.post(self.url, json=payload, headers=headers, auth=self.auth, timeout=self.timeout)
            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else None
                if status_code == 409 and attempt == 0:
                    new_session_id = e.response.headers.get(SESSION_HEADER)
                    if new_session_id:
                        logging.debug("Received session id from Transmission")
                        self.session_id = new_session_id
                        continue
                if status_code == 401:
                    raise DownloadClientAuthError("Transmission rejected the configured username/password") from e
                raise DownloadClientError(f"Transmission RPC '{method}' failed: {str(e)}") from e
            except requests.exceptions.RequestException as e:
                raise DownloadClientUnavailableError(f"Could not reach Transmission at {self.url}: {str(e)}") from e

            try:
                data = response.json()
            except ValueError as e:
                raise DownloadClientError(f"Transmission returned invalid JSON for '{method}': {response.text[:200]}") from e

            result = data.get('result')
            if result != 'success':
                raise DownloadClientError(f"Transmission RPC '{method}' failed: {result}")
            return data.get('arguments') or {}

        raise DownloadClientError(f"Transmission kept rejecting the session id for '{method}'")

    def add_torrent(self, locator: str, download_dir: str) -> None:
        arguments = self._rpc('torrent-add', {'filename': locator, 'download-dir': download_dir})
        if 'torrent-duplicate' in arguments:
            logging.info(f"Transmission already has {arguments['torrent-duplicate'].get('name', locator)}")
        else:
            added = arguments.get('torrent-added', {})
            logging.debug(f"Transmission added {added.get('name', locator)} to {download_dir}")

    def _list_torrents(self, fields):
        return self._rpc('torrent-get', {'fields': fields}).get('torrents', [])

    def get_existing_torrent_hashes(self) -> Set[str]:
        torrents = self._list_torrents(['id', 'name', 'hashString'])
        return {t['hashString'].lower() for t in torrents if t.get('hashString')}

    def clear_all_torrents(self, delete_local_data: bool = False) -> int:
        torrents = self._list_torrents(['id', 'name'])
        if not torrents:
            logging.info("No torrents to remove")
            return 0

        for torrent in torrents:
            logging.info(f"Removing torrent: {torrent.get('name')}")
        self._rpc('torrent-remove', {
            'ids': [t['id'] for t in torrents],
            'delete-local-data': delete_local_data,
        })
        logging.info(f"Successfully removed {len(torrents)} torrent(s)")
        return len(torrents)
