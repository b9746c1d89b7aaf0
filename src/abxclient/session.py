from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from .constants import FRAME_SIZE
from .net import (
    ClosedBeforeComplete,
    Complete,
    OperationTimeout,
    Transport,
    TransportError,
    TransportFailure,
    read_exact,
)
from .packet import MalformedFrame, Packet, decode_frame, encode_stream_all_request

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    TRUNCATED = "truncated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ResendFailed:
    sequence: int
    cause: str


@dataclass(slots=True)
class SessionStats:
    frames_received: int = 0
    malformed_frames: int = 0
    duplicate_frames: int = 0
    truncated_bytes: int = 0
    resend_requests: int = 0
    resends_recovered: int = 0
    resend_failures: list[ResendFailed] = field(default_factory=list)


@dataclass(slots=True)
class FeedSession:
    """Packets gathered over one fetch, keyed by sequence.

    The stream phase fills it first; the resend phase only ever inserts.
    """

    state: SessionState = SessionState.IDLE
    packets: dict[int, Packet] = field(default_factory=dict)
    stats: SessionStats = field(default_factory=SessionStats)

    @property
    def received(self) -> set[int]:
        return set(self.packets)

    @property
    def max_sequence(self) -> int:
        return max(self.packets, default=0)

    @property
    def complete(self) -> bool:
        return len(self.packets) == self.max_sequence

    def add(self, packet: Packet) -> bool:
        if packet.sequence in self.packets:
            self.stats.duplicate_frames += 1
            logger.debug("duplicate sequence=%d ignored", packet.sequence)
            return False
        self.packets[packet.sequence] = packet
        return True

    def ordered_packets(self) -> list[Packet]:
        return [self.packets[seq] for seq in sorted(self.packets)]


@dataclass(slots=True)
class StreamSession:
    transport: Transport
    deadline: float | None = None

    def run(self, session: FeedSession | None = None) -> FeedSession:
        session = session if session is not None else FeedSession()
        session.state = SessionState.STREAMING

        try:
            self.transport.sendall(encode_stream_all_request())
        except OSError as e:
            session.state = SessionState.FAILED
            raise TransportError(f"failed to send stream-all request: {e}") from e
        logger.info("stream-all request sent")

        while True:
            try:
                outcome = read_exact(self.transport, FRAME_SIZE, self.deadline)
            except OperationTimeout:
                session.state = SessionState.FAILED
                raise

            if isinstance(outcome, Complete):
                session.stats.frames_received += 1
                try:
                    packet = decode_frame(outcome.data)
                except MalformedFrame as e:
                    session.stats.malformed_frames += 1
                    logger.warning("skipping malformed frame: %s", e)
                    continue
                session.add(packet)
                logger.debug("frame sequence=%d symbol=%s", packet.sequence, packet.symbol)
                continue

            if isinstance(outcome, ClosedBeforeComplete):
                if outcome.partial:
                    session.state = SessionState.TRUNCATED
                    session.stats.truncated_bytes = len(outcome.partial)
                    logger.warning(
                        "stream truncated mid-frame; discarded %d of %d bytes",
                        len(outcome.partial),
                        FRAME_SIZE,
                    )
                else:
                    session.state = SessionState.COMPLETE
                break

            if isinstance(outcome, TransportFailure):
                session.state = SessionState.FAILED
                raise TransportError(f"stream read failed: {outcome.cause}") from outcome.cause

        logger.info(
            "stream ended state=%s packets=%d max_sequence=%d",
            session.state.value,
            len(session.packets),
            session.max_sequence,
        )
        return session
