from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from .constants import (
    FRAME_FORMAT,
    FRAME_SIZE,
    MAX_SEQUENCE,
    RESEND,
    RESEND_FORMAT,
    STREAM_ALL,
    STREAM_ALL_FORMAT,
    SYMBOL_LEN,
)

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class MalformedFrame(ValueError):
    pass


class Side(str, enum.Enum):
    BUY = "B"
    SELL = "S"


@dataclass(frozen=True, slots=True)
class Packet:
    symbol: str
    side: Side
    quantity: int
    price: int
    sequence: int

    def __post_init__(self) -> None:
        if len(self.symbol) != SYMBOL_LEN:
            raise ValueError(f"symbol must be {SYMBOL_LEN} characters, got {self.symbol!r}")
        try:
            self.symbol.encode("latin-1")
        except UnicodeEncodeError as e:
            raise ValueError(f"symbol not representable in one byte per character: {self.symbol!r}") from e
        if not isinstance(self.side, Side):
            raise ValueError(f"side must be a Side, got {self.side!r}")
        for name in ("quantity", "price"):
            value = getattr(self, name)
            if not _INT32_MIN <= value <= _INT32_MAX:
                raise ValueError(f"{name} out of int32 range: {value}")
        if not 1 <= self.sequence <= MAX_SEQUENCE:
            raise ValueError(f"sequence out of range: {self.sequence}")

    def to_bytes(self) -> bytes:
        return struct.pack(
            FRAME_FORMAT,
            self.symbol.encode("latin-1"),
            self.side.value.encode("ascii"),
            self.quantity,
            self.price,
            self.sequence,
        )

    @staticmethod
    def from_bytes(raw: bytes) -> "Packet":
        return decode_frame(raw)

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "buy_sell": self.side.value,
            "quantity": self.quantity,
            "price": self.price,
            "sequence": self.sequence,
        }


def encode_stream_all_request() -> bytes:
    return struct.pack(STREAM_ALL_FORMAT, STREAM_ALL, 0)


def encode_resend_request(sequence: int) -> bytes:
    if not 1 <= sequence <= MAX_SEQUENCE:
        raise ValueError(f"resend sequence out of range: {sequence}")
    return struct.pack(RESEND_FORMAT, RESEND, sequence)


def decode_frame(raw: bytes) -> Packet:
    """Decode one 17-byte response frame.

    Side indicators other than ``B``/``S`` are rejected, as is sequence 0.
    """
    if len(raw) != FRAME_SIZE:
        raise MalformedFrame(f"frame must be {FRAME_SIZE} bytes, got {len(raw)}")

    symbol, side, quantity, price, sequence = struct.unpack(FRAME_FORMAT, raw)
    try:
        side = Side(side.decode("latin-1"))
    except ValueError as e:
        raise MalformedFrame(f"invalid side indicator {side!r}") from e
    if sequence == 0:
        raise MalformedFrame("sequence 0 is not a valid packet sequence")

    return Packet(
        symbol=symbol.decode("latin-1"),
        side=side,
        quantity=quantity,
        price=price,
        sequence=sequence,
    )
