import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from typing import Callable, List, Optional, Sequence

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.executors.pool import ThreadPoolExecutor

from api_tracker import is_rate_limited
from database.core import get_db_connection
from database.polling_config import update_last_poll_time
from database.shows import get_tracked_shows
from download_client.base import DownloadClient, DownloadClientError
from scraper.feed_manager import fetch_by_source
from tracker.schedule import DEFAULT_FALLBACK_HOURS, load_next_run, next_fallback_run, wait_seconds
from tracker.show_processor import FeedFetcher, ShowProcessor, ShowResult

POLL_JOB_ID = 'tracker_poll'

@dataclass
class PollResult:
    success: bool
    shows_processed: int = 0
    downloads: int = 0
    failures: int = 0
    already_running: bool = False
    show_results: List[ShowResult] = field(default_factory=list)

class TrackerRunner:
    """
    Owns the poll loop: a one-shot APScheduler job that runs a pass and then
    schedules the next one, whatever happened during the pass.

    run_once() is the manual "sync now" entry point. It shares a lock with the
    scheduled pass, so a pass already in progress makes it return immediately
    with already_running set.
    """

    def __init__(self, http, download_client: DownloadClient, timezone=None, db_path: Optional[str] = None,
                 fetch_items: Optional[FeedFetcher] = None,
                 connection_factory: Optional[Callable[[], sqlite3.Connection]] = None,
                 fallback_hours: Sequence[int] = DEFAULT_FALLBACK_HOURS):
        self.http = http
        self.download_client = download_client
        self.timezone = timezone
        self.fetch_items = fetch_items or partial(fetch_by_source, http)
        self.connection_factory = connection_factory or partial(get_db_connection, db_path)
        self.fallback_hours = tuple(fallback_hours)
        self.stop_event = threading.Event()
        self.pass_lock = threading.Lock()
        self.scheduler: Optional[BackgroundScheduler] = None
        self.next_run_time: Optional[datetime] = None

    def _now(self) -> datetime:
        return datetime.now(self.timezone) if self.timezone else datetime.now().astimezone()

    def start(self):
        executors = {
            'default': ThreadPoolExecutor(max_workers=1)
        }
        job_defaults = {
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': None  # Run no matter how late
        }
        if self.timezone:
            self.scheduler = BackgroundScheduler(executors=executors, job_defaults=job_defaults, timezone=self.timezone)
        else:
            self.scheduler = BackgroundScheduler(executors=executors, job_defaults=job_defaults)
        self.stop_event.clear()
        self.scheduler.start()
        logging.info("Tracker scheduler started")
        self.schedule_next_run()

    def stop(self):
        self.stop_event.set()
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logging.info("Tracker scheduler stopped")

    def schedule_next_run(self) -> Optional[datetime]:
        if self.scheduler is None or self.stop_event.is_set():
            return None

        now = self._now()
        try:
            conn = self.connection_factory()
        except (sqlite3.Error, OSError) as e:
            logging.error(f"Failed to open the database for the polling config: {e}")
            next_run, from_interval = next_fallback_run(now, self.fallback_hours), False
        else:
            try:
                next_run, from_interval = load_next_run(conn, now, self.fallback_hours)
            finally:
                conn.close()

        delay = wait_seconds(next_run, now)
        next_run = max(next_run, now + timedelta(seconds=delay))

        mode = "RSS interval" if from_interval else f"fallback ({', '.join(f'{h:02d}:00' for h in self.fallback_hours)})"
        logging.info(f"Next poll at {next_run.strftime('%Y-%m-%d %H:%M:%S')} in {delay:.0f}s ({mode} mode)")

        self.scheduler.add_job(
            self._scheduled_poll,
            trigger='date',
            run_date=next_run,
            id=POLL_JOB_ID,
            name=POLL_JOB_ID,
            replace_existing=True,
        )
        self.next_run_time = next_run
        return next_run

    def _scheduled_poll(self):
        try:
            logging.info(f"Starting download check at {self._now().strftime('%Y-%m-%d %H:%M:%S')}")
            result = self.run_once()
            if result.success:
                logging.info("Download check completed successfully.")
            else:
                logging.warning(f"Download check finished with {result.failures} failure(s).")
        except Exception as e:
            logging.error(f"Download check failed: {e}", exc_info=True)
        finally:
            self.schedule_next_run()

    def run_once(self) -> PollResult:
        """Run one pass over every tracked show. Never raises."""
        if not self.pass_lock.acquire(blocking=False):
            logging.info("A poll is already running, skipping this request")
            return PollResult(success=False, already_running=True)
        try:
            return self._run_pass()
        except Exception as e:
            logging.error(f"Poll failed: {e}", exc_info=True)
            return PollResult(success=False, failures=1)
        finally:
            self.pass_lock.release()

    def _existing_client_hashes(self):
        try:
            return self.download_client.get_existing_torrent_hashes()
        except DownloadClientError as e:
            logging.warning(f"Could not list torrents in the download client, relying on history only: {e}")
            return set()

    def _run_pass(self) -> PollResult:
        result = PollResult(success=True)
        try:
            conn = self.connection_factory()
        except (sqlite3.Error, OSError) as e:
            logging.error(f"Could not open the database for this poll: {e}")
            return PollResult(success=False, failures=1)

        try:
            try:
                shows = get_tracked_shows(conn)
            except sqlite3.Error as e:
                logging.error(f"Failed to load tracked shows: {e}")
                return PollResult(success=False, failures=1)

            if not shows:
                logging.info("No tracked shows found in database.")
            else:
                logging.info(f"Processing {len(shows)} tracked show(s)...")
                processor = ShowProcessor(conn, self.fetch_items, self.download_client, self._existing_client_hashes())

                for show in shows:
                    if self.stop_event.is_set():
                        logging.info("Stop requested, ending poll early")
                        break

                    logging.debug(f"Checking: {show.title} ({show.quality}) [source: {show.source}]")
                    try:
                        show_result = processor.process(show)
                    except Exception as e:
                        logging.error(f"Error processing show '{show.title}': {e}", exc_info=True)
                        show_result = ShowResult(show_id=show.id, title=show.title, error=str(e))

                    result.show_results.append(show_result)
                    result.shows_processed += 1
                    result.downloads += show_result.downloads
                    if show_result.failed:
                        result.failures += 1

            try:
                update_last_poll_time(conn)
            except sqlite3.Error as e:
                logging.error(f"Failed to update last poll time: {e}")
        finally:
            conn.close()

        if self.http is not None and is_rate_limited(self.http):
            logging.warning("Feed providers are being called more often than the configured limits")

        result.success = result.failures == 0
        logging.info(f"Poll complete. Downloaded {result.downloads} new episode(s).")
        return result
