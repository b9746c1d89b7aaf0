from __future__ import annotations

import time
from collections import deque

from abxclient.packet import Packet, Side


class ScriptedTransport:
    """In-memory transport replaying scripted recv results.

    Each script item is bytes (served across as many short reads as the
    caller's bufsize requires) or an exception to raise. An exhausted script
    reads as a clean close.
    """

    def __init__(self, script=(), send_error: Exception | None = None, delay: float = 0.0):
        self.script = deque(script)
        self.send_error = send_error
        self.delay = delay
        self.limits: list[float] = []
        self.sent: list[bytes] = []
        self.closed = False

    def limit_timeout(self, remaining: float) -> bool:
        self.limits.append(remaining)
        return True

    def recv(self, bufsize: int) -> bytes:
        if self.delay:
            time.sleep(self.delay)
        if not self.script:
            return b""
        item = self.script.popleft()
        if isinstance(item, Exception):
            raise item
        if len(item) > bufsize:
            self.script.appendleft(item[bufsize:])
            item = item[:bufsize]
        return item

    def sendall(self, data: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)

    def close(self) -> None:
        self.closed = True


def make_packet(seq: int, symbol: str = "MSFT", side: Side = Side.BUY) -> Packet:
    return Packet(symbol=symbol, side=side, quantity=seq * 10, price=1000 + seq, sequence=seq)


def frames(*seqs: int) -> bytes:
    return b"".join(make_packet(s).to_bytes() for s in seqs)
