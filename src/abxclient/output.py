from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable

from .packet import Packet


def dump_json(packets: Iterable[Packet]) -> str:
    return json.dumps([p.to_dict() for p in packets], indent=4)


def write_json(packets: Iterable[Packet], path: str | Path) -> None:
    Path(path).write_text(dump_json(packets) + "\n", encoding="utf-8")
