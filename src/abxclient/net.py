from __future__ import annotations

import random
import socket
import time
from dataclasses import dataclass, field
from typing import Protocol, Union


class TransportError(OSError):
    pass


class OperationTimeout(TransportError):
    pass


class Transport(Protocol):
    def recv(self, bufsize: int) -> bytes: ...

    def sendall(self, data: bytes) -> None: ...

    def close(self) -> None: ...

    def limit_timeout(self, remaining: float) -> bool:
        """Bound the next blocking call by ``remaining`` seconds.

        Returns True when ``remaining`` is tighter than the transport's own
        read timeout, so a timeout on that call means the deadline passed.
        """
        ...


@dataclass(frozen=True, slots=True)
class Complete:
    data: bytes


@dataclass(frozen=True, slots=True)
class ClosedBeforeComplete:
    partial: bytes = b""


@dataclass(frozen=True, slots=True)
class TransportFailure:
    cause: OSError


ReadOutcome = Union[Complete, ClosedBeforeComplete, TransportFailure]


def check_deadline(deadline: float | None) -> None:
    if deadline is not None and time.monotonic() >= deadline:
        raise OperationTimeout("operation deadline exceeded")


def read_exact(transport: Transport, n: int, deadline: float | None = None) -> ReadOutcome:
    """Read exactly ``n`` bytes, accumulating across short reads.

    A zero-byte read is a clean close by the peer. Any ``OSError`` from the
    transport, read timeouts included, becomes a ``TransportFailure``.
    With a ``deadline`` every ``recv`` is bounded by the time left, and
    running out raises ``OperationTimeout`` even mid-frame.
    """
    buf = bytearray()
    while len(buf) < n:
        capped = False
        if deadline is not None:
            check_deadline(deadline)
            capped = transport.limit_timeout(deadline - time.monotonic())
        try:
            chunk = transport.recv(n - len(buf))
        except TimeoutError as e:
            if capped:
                raise OperationTimeout(f"operation deadline exceeded after {len(buf)} of {n} bytes") from e
            return TransportFailure(e)
        except OSError as e:
            return TransportFailure(e)
        if not chunk:
            return ClosedBeforeComplete(bytes(buf))
        buf.extend(chunk)
    return Complete(bytes(buf))


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0
    rng: random.Random = field(default_factory=random.Random, compare=False)

    def should_drop(self) -> bool:
        return self.rng.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class TcpEndpoint:
    def __init__(self, sock: socket.socket, timeout: float | None = None):
        self.sock = sock
        self.timeout = timeout

    @classmethod
    def connect(cls, host: str, port: int, timeout_ms: int = 0) -> "TcpEndpoint":
        timeout = timeout_ms / 1000.0 if timeout_ms > 0 else None
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as e:
            raise TransportError(f"could not connect to {host}:{port}: {e}") from e
        sock.settimeout(timeout)
        return cls(sock, timeout)

    def limit_timeout(self, remaining: float) -> bool:
        remaining = max(remaining, 0.001)
        if self.timeout is None or remaining < self.timeout:
            self.sock.settimeout(remaining)
            return True
        self.sock.settimeout(self.timeout)
        return False

    def recv(self, bufsize: int) -> bytes:
        return self.sock.recv(bufsize)

    def sendall(self, data: bytes) -> None:
        self.sock.sendall(data)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "TcpEndpoint":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
