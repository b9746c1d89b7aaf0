from __future__ import annotations

STREAM_ALL = 1
RESEND = 2

STREAM_ALL_FORMAT = "!BB"  # opcode, unused
RESEND_FORMAT = "!BI"  # opcode, sequence
FRAME_FORMAT = "!4sciiI"  # symbol, side, quantity, price, sequence

FRAME_SIZE = 17
SYMBOL_LEN = 4
MAX_SEQUENCE = 0xFFFFFFFF

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_OPERATION_TIMEOUT_MS = 0
DEFAULT_OUTPUT = "output.json"
