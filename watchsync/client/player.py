import asyncio
import logging
import time
from typing import AsyncIterator, Callable, List, Optional, Tuple

from watchsync.models.playback import EventKind, PlaybackState

logger = logging.getLogger(__name__)

RawEvent = Tuple[EventKind, PlaybackState]
Listener = Callable[[EventKind, PlaybackState], None]


class PlayerAdapter:
    """One local media source as seen by the syncer.

    Setters may raise the matching event synchronously, before they return.
    Listeners are called in the thread and call stack that caused the event.
    """

    def current_state(self) -> PlaybackState:
        raise NotImplementedError

    def set_position(self, seconds: float) -> None:
        raise NotImplementedError

    def set_paused(self, paused: bool) -> None:
        raise NotImplementedError

    def set_rate(self, rate: float) -> None:
        raise NotImplementedError

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        raise NotImplementedError

    async def raw_events(self) -> AsyncIterator[RawEvent]:
        """Endless stream of raw events, starting from the moment of the call."""
        queue: asyncio.Queue = asyncio.Queue()
        unsubscribe = self.subscribe(lambda kind, state: queue.put_nowait((kind, state)))
        try:
            while True:
                yield await queue.get()
        finally:
            unsubscribe()


class MemoryPlayer(PlayerAdapter):
    """Player kept entirely in memory.

    Position advances with the clock while playing, like a media element.
    """

    def __init__(
        self,
        position: float = 0.0,
        paused: bool = True,
        rate: float = 1.0,
        duration: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._position = position
        self._anchor = clock()
        self._paused = paused
        self._rate = rate
        self.duration = duration
        self._listeners: List[Listener] = []

    def _live_position(self) -> float:
        if self._paused:
            return self._position
        elapsed = (self._clock() - self._anchor) * self._rate
        return self._position + elapsed

    def _rebase(self) -> None:
        self._position = self._live_position()
        self._anchor = self._clock()

    def current_state(self, origin: EventKind = EventKind.PROGRESS) -> PlaybackState:
        return PlaybackState(
            position=max(0.0, self._live_position()),
            paused=self._paused,
            rate=self._rate,
            duration=self.duration,
            origin_event=origin,
            observed_at=self._clock(),
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def emit(self, kind: EventKind) -> None:
        state = self.current_state(kind)
        for listener in list(self._listeners):
            listener(kind, state)

    def set_position(self, seconds: float) -> None:
        self._position = max(0.0, seconds)
        self._anchor = self._clock()
        self.emit(EventKind.SEEK)

    def set_paused(self, paused: bool) -> None:
        if paused == self._paused:
            return
        self._rebase()
        self._paused = paused
        self.emit(EventKind.PAUSE if paused else EventKind.PLAY)

    def set_rate(self, rate: float) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        if rate == self._rate:
            return
        self._rebase()
        self._rate = rate
        self.emit(EventKind.RATE_CHANGE)

    def tick(self) -> None:
        """Raise a progress event, as a playing media element does periodically."""
        self.emit(EventKind.PROGRESS)
