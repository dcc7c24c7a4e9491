import logging
import posixpath
from abc import ABC, abstractmethod
from typing import List, Optional, Set

DEFAULT_DOWNLOAD_ROOT = '/data/Anime'

class DownloadClientError(Exception):
    """Base exception class for all download client errors"""
    pass

class DownloadClientAuthError(DownloadClientError):
    """Exception raised when the download client rejects the configured credentials"""
    pass

class DownloadClientUnavailableError(DownloadClientError):
    """Exception raised when the download client cannot be reached"""
    pass

def build_destination_path(show_title: str, season: Optional[int] = None, download_root: str = DEFAULT_DOWNLOAD_ROOT,
                           download_path: Optional[str] = None) -> str:
    """
    Folder a show's episodes are saved to.

    <root>/<show>/Season <n>/ when a season is known, <root>/<show>/ otherwise.
    A show's own download_path replaces the root-derived folder.
    """
    if download_path:
        return download_path if download_path.endswith('/') else download_path + '/'
    folder = posixpath.join(download_root or DEFAULT_DOWNLOAD_ROOT, show_title)
    if season is not None:
        folder = posixpath.join(folder, f"Season {season}")
    return folder + '/'

class DownloadClient(ABC):
    """Abstract base class that defines the interface for download clients"""

    def __init__(self, download_root: str = DEFAULT_DOWNLOAD_ROOT):
        self.download_root = download_root

    @abstractmethod
    def add_torrent(self, locator: str, download_dir: str) -> None:
        """Queue one magnet link or torrent URL. Raises DownloadClientError on failure."""
        pass

    @abstractmethod
    def get_existing_torrent_hashes(self) -> Set[str]:
        """Lower-cased info hashes of every torrent the client currently holds"""
        pass

    @abstractmethod
    def clear_all_torrents(self, delete_local_data: bool = False) -> int:
        """Remove every torrent from the client and return how many were removed"""
        pass

    def dispatch(self, locators: List[str], destination_label: str, season: Optional[int] = None,
                 download_path: Optional[str] = None) -> str:
        """
        Send releases to the client, saved under the show's folder.

        Returns the destination folder. Raises DownloadClientError on the first
        locator the client refuses.
        """
        destination = build_destination_path(destination_label, season, self.download_root, download_path)
        for locator in locators:
            self.add_torrent(locator, destination)
        logging.info(f"Sent {len(locators)} release(s) for '{destination_label}' to {self.__class__.__name__} ({destination})")
        return destination
