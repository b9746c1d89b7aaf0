from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from .constants import FRAME_SIZE
from .net import ClosedBeforeComplete, Complete, Transport, TransportError, check_deadline, read_exact
from .packet import MalformedFrame, decode_frame, encode_resend_request
from .session import FeedSession, ResendFailed

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ResendCoordinator:
    """Recovers missing sequences one resend request at a time.

    A connection is opened on first use and replaced after any failed
    resend; the next sequence is then requested over a fresh connection.
    """

    connect: Callable[[], Transport]
    deadline: float | None = None
    transport: Transport | None = None

    def run(self, session: FeedSession, missing: Iterable[int]) -> list[ResendFailed]:
        failures: list[ResendFailed] = []
        pending = sorted(set(missing))
        if not pending:
            return failures

        logger.info("requesting %d missing packet(s)", len(pending))
        try:
            for seq in pending:
                check_deadline(self.deadline)
                cause = self._resend_one(session, seq)
                if cause is None:
                    session.stats.resends_recovered += 1
                    continue
                failure = ResendFailed(seq, cause)
                failures.append(failure)
                session.stats.resend_failures.append(failure)
                logger.warning("resend failed sequence=%d: %s", seq, cause)
                self._drop_connection()
        finally:
            self.close()

        logger.info(
            "recovery done; recovered=%d failed=%d",
            len(pending) - len(failures),
            len(failures),
        )
        return failures

    def _resend_one(self, session: FeedSession, seq: int) -> str | None:
        transport = self._connection()
        session.stats.resend_requests += 1
        try:
            transport.sendall(encode_resend_request(seq))
        except OSError as e:
            return f"send failed: {e}"
        logger.debug("resend request sent sequence=%d", seq)

        outcome = read_exact(transport, FRAME_SIZE, self.deadline)
        if isinstance(outcome, ClosedBeforeComplete):
            return f"connection closed after {len(outcome.partial)} of {FRAME_SIZE} bytes"
        if not isinstance(outcome, Complete):
            return f"read failed: {outcome.cause}"

        try:
            packet = decode_frame(outcome.data)
        except MalformedFrame as e:
            return f"malformed frame: {e}"
        if packet.sequence != seq:
            return f"server answered with sequence {packet.sequence}"

        session.add(packet)
        return None

    def _connection(self) -> Transport:
        if self.transport is None:
            try:
                self.transport = self.connect()
            except TransportError:
                raise
            except OSError as e:
                raise TransportError(f"could not open resend connection: {e}") from e
        return self.transport

    def _drop_connection(self) -> None:
        if self.transport is not None:
            try:
                self.transport.close()
            except OSError as e:
                logger.debug("error closing resend connection: %s", e)
            self.transport = None

    def close(self) -> None:
        self._drop_connection()
