from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    SEEK = "seek"
    RATE_CHANGE = "rate-change"
    PROGRESS = "progress"


class PlaybackState(BaseModel):
    """Snapshot of a local player, taken when an event was observed."""

    model_config = ConfigDict(frozen=True)

    position: float = Field(0.0, ge=0)
    paused: bool = True
    rate: float = Field(1.0, gt=0)
    duration: Optional[float] = None # Unknown until metadata loads
    origin_event: EventKind = EventKind.PROGRESS
    observed_at: float = 0.0 # Local monotonic clock, never sent
