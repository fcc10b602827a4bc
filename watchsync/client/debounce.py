from typing import Optional

from watchsync import config
from watchsync.models.playback import EventKind


class EventDebouncer:
    """Thins the raw event stream down to events worth sending.

    Discrete actions always pass. Progress ticks pass at most once per
    ``min_interval`` seconds, measured from the last progress tick that passed.
    """

    def __init__(self, min_interval: float = config.PROGRESS_INTERVAL):
        self.min_interval = min_interval
        self._last_progress: Optional[float] = None

    def accept(self, kind: EventKind, observed_at: float) -> bool:
        if kind != EventKind.PROGRESS:
            return True
        if self._last_progress is not None and observed_at - self._last_progress < self.min_interval:
            return False
        self._last_progress = observed_at
        return True
