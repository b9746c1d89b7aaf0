from __future__ import annotations

import json

from abxclient.output import dump_json, write_json
from conftest import make_packet


def test_dump_json_records():
    text = dump_json([make_packet(1), make_packet(2)])
    assert json.loads(text) == [make_packet(1).to_dict(), make_packet(2).to_dict()]
    assert '\n    {\n        "symbol": "MSFT"' in text


def test_write_json_empty(tmp_path):
    out = tmp_path / "output.json"
    write_json([], out)
    assert json.loads(out.read_text()) == []
