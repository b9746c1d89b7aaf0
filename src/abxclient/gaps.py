from __future__ import annotations

from typing import AbstractSet


def find_gaps(max_sequence: int, received: AbstractSet[int]) -> list[int]:
    """Sequences in ``[1, max_sequence]`` missing from ``received``, ascending."""
    return [seq for seq in range(1, max_sequence + 1) if seq not in received]
