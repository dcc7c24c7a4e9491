import sys
import os
sys.path.append(os.path.dirname(os.path.abspath(__file__)))
import appdirs
import argparse
import threading
import signal
import logging

if sys.platform.startswith('win'):
    app_name = "anime_tracker"
    app_author = "anime_tracker"
    base_path = appdirs.user_data_dir(app_name, app_author)
    os.environ['USER_CONFIG'] = os.path.join(base_path, 'config')
    os.environ['USER_LOGS'] = os.path.join(base_path, 'logs')
    os.environ['USER_DB_CONTENT'] = os.path.join(base_path, 'db_content')
else:
    os.environ.setdefault('USER_CONFIG', '/user/config')
    os.environ.setdefault('USER_LOGS', '/user/logs')
    os.environ.setdefault('USER_DB_CONTENT', '/user/db_content')

from api_tracker import APITracker
from database.schema_management import initialize_database, migrate_from_json_if_needed
from download_client import get_download_client
from download_client.base import DownloadClientError
from tracker.runner import TrackerRunner
from tracker.schedule import parse_fallback_hours
from utilities.local_timezone import get_local_timezone
from utilities.settings import ensure_settings_file, get_setting

shutdown_event = threading.Event()

def setup_directories():
    for dir_path in [os.environ['USER_CONFIG'], os.environ['USER_LOGS'], os.environ['USER_DB_CONTENT']]:
        os.makedirs(dir_path, exist_ok=True)

def setup_logging():
    import logging_config
    logging_config.setup_logging()

def get_version():
    version_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'version.txt')
    try:
        with open(version_path, 'r') as version_file:
            return version_file.readline().strip()
    except FileNotFoundError:
        logging.error("version.txt not found")
        return "0.0.0"

def signal_handler(signum, frame):
    """Handle termination signals gracefully."""
    logging.info(f"Received signal {signum}, shutting down")
    shutdown_event.set()

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Track anime releases from RSS feeds and send new episodes to a download client.")
    parser.add_argument('--sync-now', action='store_true', help="run one poll immediately before scheduling")
    parser.add_argument('--once', action='store_true', help="run a single poll and exit")
    parser.add_argument('--clear-torrents', action='store_true', help="remove every torrent from the download client and exit")
    parser.add_argument('--delete-data', action='store_true', help="with --clear-torrents, delete downloaded data too")
    parser.add_argument('--legacy-dir', default='.', help="directory holding tracked_shows.json / tracked_data.json to import")
    return parser.parse_args(argv)

def main(argv=None):
    args = parse_args(argv)
    setup_directories()
    setup_logging()
    ensure_settings_file()

    logging.info(f"anime_tracker {get_version()} starting")
    logging.info(f"USER_CONFIG: {os.environ['USER_CONFIG']}")
    logging.info(f"USER_LOGS: {os.environ['USER_LOGS']}")
    logging.info(f"USER_DB_CONTENT: {os.environ['USER_DB_CONTENT']}")

    initialize_database()
    migrated = migrate_from_json_if_needed(base_dir=args.legacy_dir)
    if migrated:
        logging.info(f"Migrated {migrated} show(s) from legacy JSON files")

    http = APITracker()
    download_client = get_download_client(http)

    if args.clear_torrents:
        try:
            removed = download_client.clear_all_torrents(delete_local_data=args.delete_data)
        except DownloadClientError as e:
            logging.error(f"Failed to clear torrents: {e}")
            return 1
        finally:
            http.close()
        logging.info(f"Removed {removed} torrent(s) from the download client")
        return 0

    runner = TrackerRunner(
        http,
        download_client,
        timezone=get_local_timezone(),
        fallback_hours=parse_fallback_hours(get_setting('Tracker', 'fallback_hours', '5,17')),
    )

    if args.once:
        try:
            result = runner.run_once()
        finally:
            http.close()
        return 0 if result.success else 1

    if args.sync_now or get_setting('Tracker', 'run_on_start', False):
        result = runner.run_once()
        logging.info(f"Initial sync: {result.shows_processed} show(s), {result.downloads} download(s), {result.failures} failure(s)")

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    runner.start()
    try:
        while not shutdown_event.wait(timeout=1):
            pass
    finally:
        runner.stop()
        http.close()
    return 0

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Program stopped by KeyboardInterrupt in __main__.")
    except Exception as e_main_startup:
        logging.critical(f"Unhandled exception during __main__ startup: {e_main_startup}", exc_info=True)
        print(f"Critical startup error: {e_main_startup}")
        sys.exit(1)
