"""Advisory file locks shared by the YAML stores."""

from __future__ import annotations

import contextlib
import os
from typing import IO, Iterator


@contextlib.contextmanager
def locked(fh: IO[str], *, exclusive: bool) -> Iterator[IO[str]]:
    """Hold an advisory lock on ``fh`` for the duration of the block."""

    if os.name == "nt":
        import msvcrt

        # msvcrt locks bytes from the current position, so both calls use byte 0
        fh.seek(0)
        msvcrt.locking(fh.fileno(), msvcrt.LK_LOCK, 1)  # type: ignore[attr-defined]
    else:
        import fcntl

        fcntl.flock(fh.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield fh
    finally:
        if os.name == "nt":
            fh.seek(0)
            msvcrt.locking(fh.fileno(), msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        else:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
