import os

from utilities.settings import get_setting
from .base import (
    DownloadClient,
    DownloadClientError,
    DownloadClientAuthError,
    DownloadClientUnavailableError,
    build_destination_path,
)
from .transmission import TransmissionClient

DEFAULT_TRANSMISSION_URL = 'http://localhost:9091/transmission/rpc'

def get_transmission_url() -> str:
    """TRANSMISSION_HOST / TRANSMISSION_PORT win over the configured URL."""
    host = os.environ.get('TRANSMISSION_HOST')
    port = os.environ.get('TRANSMISSION_PORT')
    if host or port:
        return f"http://{host or 'localhost'}:{port or '9091'}/transmission/rpc"
    return get_setting('Download Client', 'url', DEFAULT_TRANSMISSION_URL) or DEFAULT_TRANSMISSION_URL

def get_download_client(http) -> DownloadClient:
    """Build the configured download client around the shared HTTP client."""
    client_type = str(get_setting('Download Client', 'type', 'transmission')).lower()

    if client_type == 'transmission':
        return TransmissionClient(
            http,
            get_transmission_url(),
            username=get_setting('Download Client', 'username', ''),
            password=get_setting('Download Client', 'password', ''),
            download_root=get_setting('Download Client', 'download_root', '/data/Anime'),
            timeout=int(get_setting('Feeds', 'request_timeout', 30)),
        )
    raise ValueError(f"Unknown download client: {client_type}")

__all__ = [
    'get_download_client',
    'get_transmission_url',
    'DownloadClient',
    'DownloadClientError',
    'DownloadClientAuthError',
    'DownloadClientUnavailableError',
    'TransmissionClient',
    'build_destination_path',
]
