from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class CommandKind(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    SEEK = "seek"


class SyncCommand(BaseModel):
    kind: CommandKind
    room: str = Field(min_length=1)
    position: Optional[float] = Field(None, ge=0)
    paused: Optional[bool] = None
    rate: Optional[float] = Field(None, gt=0)
    time: float # Sender clock, diagnostic only

    @model_validator(mode="after")
    def check_kind_fields(self) -> "SyncCommand":
        if self.kind == CommandKind.SEEK:
            if self.position is None:
                raise ValueError("seek requires a position")
            # seek never changes paused or rate on the receiving side
            self.paused = None
            self.rate = None
        else:
            expected = self.kind == CommandKind.PAUSE
            if self.paused is None:
                self.paused = expected
            elif self.paused != expected:
                raise ValueError(f"{self.kind.value} must carry paused={str(expected).lower()}")
        return self

    @classmethod
    def from_wire(cls, kind: str, data: Any) -> "SyncCommand":
        """Build a command from a socket event name and its payload.

        Raises ``pydantic.ValidationError`` when the payload is malformed.
        """
        if not isinstance(data, dict):
            data = {}
        return cls.model_validate({**data, "kind": kind})

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", exclude={"kind"}, exclude_none=True)


class JoinRequest(BaseModel):
    room: str = Field(min_length=1)

    @classmethod
    def from_wire(cls, data: Any) -> "JoinRequest":
        # The original clients sent the bare room id
        if isinstance(data, str):
            data = {"room": data}
        return cls.model_validate(data)
