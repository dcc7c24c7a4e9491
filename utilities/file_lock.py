import sys
import time

class FileLock:
    """Exclusive advisory lock on an open file (fcntl, or msvcrt on Windows)."""

    def __init__(self, file_obj, poll_interval=0.1):
        self.file_obj = file_obj
        self.poll_interval = poll_interval
        self.is_windows = sys.platform.startswith('win')

    def acquire(self):
        if not self.is_windows:
            import fcntl
            fcntl.flock(self.file_obj, fcntl.LOCK_EX)
            return

        import msvcrt
        # msvcrt has no blocking exclusive lock, so poll
        while True:
            try:
                msvcrt.locking(self.file_obj.fileno(), msvcrt.LK_NBLCK, 1)
                return
            except OSError:
                time.sleep(self.poll_interval)

    def release(self):
        if not self.is_windows:
            import fcntl
            fcntl.flock(self.file_obj, fcntl.LOCK_UN)
            return

        import msvcrt
        self.file_obj.seek(0)
        msvcrt.locking(self.file_obj.fileno(), msvcrt.LK_UNLCK, 1)

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
