from __future__ import annotations

import logging
import random
import socket
import struct
import threading
from typing import Collection, Iterable

from .constants import RESEND, STREAM_ALL
from .net import Complete, Impairment, TcpEndpoint, read_exact
from .packet import Packet, Side

logger = logging.getLogger(__name__)

SYMBOLS = ("MSFT", "AAPL", "AMZN", "META")


def generate_packets(count: int, seed: int = 0) -> list[Packet]:
    rng = random.Random(seed)
    return [
        Packet(
            symbol=rng.choice(SYMBOLS),
            side=rng.choice((Side.BUY, Side.SELL)),
            quantity=rng.randint(1, 100),
            price=rng.randint(50, 500) * 100,
            sequence=seq,
        )
        for seq in range(1, count + 1)
    ]


class FeedSimulator:
    """Loopback ABX server.

    A stream-all request gets every frame not dropped, then the connection
    is closed. Resend requests are answered one frame each on a connection
    that stays open.
    """

    def __init__(
        self,
        packets: Iterable[Packet],
        host: str = "127.0.0.1",
        port: int = 0,
        impairment: Impairment | None = None,
        drop: Collection[int] = (),
    ):
        self.packets = {p.sequence: p for p in packets}
        self.impairment = impairment or Impairment()
        self.drop = frozenset(drop)
        self.resend_log: list[int] = []
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind((host, port))
        self.sock.listen()
        self._closing = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def start(self) -> "FeedSimulator":
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)
        self._thread.start()
        return self

    def serve_forever(self) -> None:
        host, port = self.address
        logger.info("simulator listening on %s:%d with %d packets", host, port, len(self.packets))
        while not self._closing.is_set():
            try:
                conn, addr = self.sock.accept()
            except OSError:
                if self._closing.is_set():
                    break
                raise
            with conn:
                try:
                    self._handle(TcpEndpoint(conn))
                except OSError as e:
                    logger.debug("connection from %s ended with error: %s", addr, e)

    def _handle(self, conn: TcpEndpoint) -> None:
        while True:
            outcome = read_exact(conn, 1)
            if not isinstance(outcome, Complete):
                return
            op = outcome.data

            if op[0] == STREAM_ALL:
                if not isinstance(read_exact(conn, 1), Complete):
                    return
                sent = 0
                for seq in sorted(self.packets):
                    if seq in self.drop or self.impairment.should_drop():
                        continue
                    self.impairment.sleep_if_needed()
                    conn.sendall(self.packets[seq].to_bytes())
                    sent += 1
                logger.debug("streamed %d of %d packets", sent, len(self.packets))
                return

            if op[0] == RESEND:
                outcome = read_exact(conn, 4)
                if not isinstance(outcome, Complete):
                    return
                (seq,) = struct.unpack("!I", outcome.data)
                self.resend_log.append(seq)
                packet = self.packets.get(seq)
                if packet is None:
                    logger.debug("resend for unknown sequence=%d; closing", seq)
                    return
                conn.sendall(packet.to_bytes())
                continue

            logger.debug("unknown opcode %d; closing", op[0])
            return

    def close(self) -> None:
        self._closing.set()
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("listener shutdown: %s", e)
        self.sock.close()
        if self._thread is not None:
            self._thread.join(timeout=5.0)

    def __enter__(self) -> "FeedSimulator":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()
