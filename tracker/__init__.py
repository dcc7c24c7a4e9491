from .runner import TrackerRunner, PollResult
from .show_processor import ShowProcessor, ShowResult
