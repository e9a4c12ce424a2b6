"""Content-based row identity.

A row is identified by a digest of its rendered cells, so the same row can be
found again after re-sorting, re-filtering or in a new process. Rows with
identical cells share a digest and cannot be told apart.
"""

import hashlib
from collections.abc import Sequence

# ASCII unit separator; does not occur in rendered cell text.
CELL_SEPARATOR = "\x1f"


def row_digest(cells: Sequence[str]) -> str:
    """Return the SHA-256 hex digest of a row's cells."""
    joined = CELL_SEPARATOR.join(cells)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def find_row_by_digest(rows: Sequence[Sequence[str]], digest: str) -> int | None:
    """Return the index of the first row with the given digest, if any."""
    target = digest.strip().lower()
    for index, row in enumerate(rows):
        if row_digest(row) == target:
            return index
    return None
