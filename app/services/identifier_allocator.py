"""Sequential natural identifiers such as STF001 or ADM0042.

The allocator never reads the data store. Callers pass in the maximum
sequence they fetched right before writing and handle collisions themselves.
"""

import re
from typing import Iterable


def format_identifier(sequence: int, *, prefix: str, width: int) -> str:
    """Format a sequence number as prefix + zero-padded digits."""
    return f"{prefix}{sequence:0{width}d}"


def sequence_of(identifier: str | None, *, prefix: str) -> int | None:
    """Return the numeric part of an identifier, or None if it has another shape."""
    if not identifier:
        return None
    match = re.fullmatch(rf"{re.escape(prefix)}(\d+)", identifier.strip())
    if not match:
        return None
    return int(match.group(1))


def max_sequence(identifiers: Iterable[str | None], *, prefix: str) -> int:
    """Highest numeric suffix among identifiers of the form prefix + digits (0 if none).

    Compared as integers, so STF1000 counts as higher than STF999.
    """
    sequences = (sequence_of(identifier, prefix=prefix) for identifier in identifiers)
    return max((seq for seq in sequences if seq is not None), default=0)


def allocate(existing_max: int, count: int, *, prefix: str, width: int) -> list[str]:
    """Assign the next count identifiers after existing_max.

    Same inputs always give the same strictly increasing, gap-free list.
    """
    if count < 0:
        raise ValueError("count must not be negative")
    if existing_max < 0:
        raise ValueError("existing_max must not be negative")
    return [
        format_identifier(existing_max + offset, prefix=prefix, width=width)
        for offset in range(1, count + 1)
    ]
