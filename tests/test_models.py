import pytest
from pydantic import ValidationError

from watchsync.models.command import CommandKind, JoinRequest, SyncCommand
from watchsync.models.playback import EventKind, PlaybackState


def test_play_and_pause_fill_in_paused():
    play = SyncCommand.from_wire("play", {"room": "r", "time": 1.0})
    pause = SyncCommand.from_wire("pause", {"room": "r", "position": 4.0, "time": 1.0})

    assert play.kind == CommandKind.PLAY and play.paused is False
    assert pause.kind == CommandKind.PAUSE and pause.paused is True


def test_contradicting_paused_flag_is_malformed():
    with pytest.raises(ValidationError):
        SyncCommand.from_wire("pause", {"room": "r", "paused": False, "time": 1.0})


@pytest.mark.parametrize(
    "kind, data",
    [
        ("seek", {"room": "r", "time": 1.0}),
        ("play", {"time": 1.0}),
        ("play", {"room": "r"}),
        ("play", {"room": "r", "rate": 0, "time": 1.0}),
        ("seek", {"room": "r", "position": -3, "time": 1.0}),
        ("rewind", {"room": "r", "time": 1.0}),
        ("pause", None),
    ],
)
def test_malformed_commands_raise(kind, data):
    with pytest.raises(ValidationError):
        SyncCommand.from_wire(kind, data)


def test_seek_ignores_paused_and_rate():
    seek = SyncCommand.from_wire("seek", {"room": "r", "position": 9.0, "paused": True, "rate": 2.0, "time": 1.0})

    assert seek.paused is None
    assert seek.rate is None
    assert seek.to_wire() == {"room": "r", "position": 9.0, "time": 1.0}


def test_to_wire_matches_protocol_shape():
    command = SyncCommand(kind="pause", room="movie-night", position=120.4, time=5.0)

    assert command.to_wire() == {"room": "movie-night", "position": 120.4, "paused": True, "time": 5.0}


def test_join_request_accepts_string_or_dict():
    assert JoinRequest.from_wire("abc").room == "abc"
    assert JoinRequest.from_wire({"room": "abc"}).room == "abc"
    with pytest.raises(ValidationError):
        JoinRequest.from_wire(None)


def test_playback_state_is_immutable_and_checks_rate():
    state = PlaybackState(position=3.0, paused=False, rate=1.25, origin_event=EventKind.PLAY)

    with pytest.raises(ValidationError):
        state.position = 4.0
    with pytest.raises(ValidationError):
        PlaybackState(rate=0)


def test_position_past_duration_is_tolerated():
    state = PlaybackState(position=130.0, duration=120.0)

    assert state.position == 130.0
