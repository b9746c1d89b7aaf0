from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Callable

from .constants import DEFAULT_OPERATION_TIMEOUT_MS, DEFAULT_TIMEOUT_MS
from .gaps import find_gaps
from .net import TcpEndpoint, Transport, TransportError
from .resend import ResendCoordinator
from .session import FeedSession, StreamSession

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FeedClient:
    """Fetches one complete, ordered feed: stream, find gaps, resend."""

    connect: Callable[[], Transport]
    operation_timeout_ms: int = DEFAULT_OPERATION_TIMEOUT_MS

    @classmethod
    def tcp(
        cls,
        host: str,
        port: int,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        operation_timeout_ms: int = DEFAULT_OPERATION_TIMEOUT_MS,
    ) -> "FeedClient":
        return cls(
            connect=partial(TcpEndpoint.connect, host, port, timeout_ms),
            operation_timeout_ms=operation_timeout_ms,
        )

    def fetch(self) -> FeedSession:
        deadline = None
        if self.operation_timeout_ms > 0:
            deadline = time.monotonic() + self.operation_timeout_ms / 1000.0

        try:
            transport = self.connect()
        except TransportError:
            raise
        except OSError as e:
            raise TransportError(f"could not open stream connection: {e}") from e

        try:
            session = StreamSession(transport, deadline=deadline).run()
        finally:
            transport.close()

        missing = find_gaps(session.max_sequence, session.received)
        logger.info("found %d gap(s) up to sequence %d", len(missing), session.max_sequence)

        if missing:
            ResendCoordinator(self.connect, deadline=deadline).run(session, missing)
        return session
