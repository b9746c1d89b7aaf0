from __future__ import annotations

import time

import pytest

from abxclient.net import OperationTimeout, TransportError
from abxclient.session import FeedSession, SessionState, StreamSession
from conftest import ScriptedTransport, frames, make_packet


def test_sends_stream_all_and_reads_until_close():
    t = ScriptedTransport([frames(1, 2, 4)])
    session = StreamSession(t).run()
    assert t.sent == [b"\x01\x00"]
    assert session.state is SessionState.COMPLETE
    assert session.received == {1, 2, 4}
    assert session.max_sequence == 4
    assert session.stats.frames_received == 3


def test_frames_split_across_reads():
    raw = frames(1, 2, 3)
    t = ScriptedTransport([raw[:5], raw[5:20], raw[20:21], raw[21:]])
    session = StreamSession(t).run()
    assert session.received == {1, 2, 3}


def test_empty_stream():
    session = StreamSession(ScriptedTransport([])).run()
    assert session.state is SessionState.COMPLETE
    assert session.packets == {}
    assert session.max_sequence == 0
    assert session.complete


def test_truncated_stream_keeps_whole_frames():
    partial = make_packet(5).to_bytes()[:10]
    t = ScriptedTransport([frames(1, 2, 3, 4), partial])
    session = StreamSession(t).run()
    assert session.state is SessionState.TRUNCATED
    assert session.stats.truncated_bytes == 10
    assert session.max_sequence == 4
    assert session.received == {1, 2, 3, 4}


def test_malformed_frame_is_skipped():
    bad = bytearray(make_packet(2).to_bytes())
    bad[4] = ord("?")
    t = ScriptedTransport([frames(1), bytes(bad), frames(3)])
    session = StreamSession(t).run()
    assert session.state is SessionState.COMPLETE
    assert session.received == {1, 3}
    assert session.stats.malformed_frames == 1


def test_duplicate_sequence_keeps_first():
    first = make_packet(1, symbol="AAPL")
    t = ScriptedTransport([first.to_bytes(), make_packet(1, symbol="MSFT").to_bytes()])
    session = StreamSession(t).run()
    assert session.packets[1] == first
    assert session.stats.duplicate_frames == 1


def test_read_error_is_fatal():
    t = ScriptedTransport([frames(1), ConnectionResetError("reset")])
    session = FeedSession()
    with pytest.raises(TransportError):
        StreamSession(t).run(session)
    assert session.state is SessionState.FAILED
    assert session.received == {1}


def test_send_error_is_fatal():
    t = ScriptedTransport([frames(1)], send_error=BrokenPipeError("pipe"))
    session = FeedSession()
    with pytest.raises(TransportError):
        StreamSession(t).run(session)
    assert session.state is SessionState.FAILED


def test_expired_deadline_fails_session():
    session = FeedSession()
    with pytest.raises(OperationTimeout):
        StreamSession(ScriptedTransport([frames(1)]), deadline=time.monotonic() - 1).run(session)
    assert session.state is SessionState.FAILED


def test_ordered_packets():
    session = FeedSession()
    for seq in (3, 1, 2):
        session.add(make_packet(seq))
    assert [p.sequence for p in session.ordered_packets()] == [1, 2, 3]
