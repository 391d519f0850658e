import threading
from contextlib import contextmanager
from typing import Iterator


_lock = threading.Lock()
# One entry per (program, batch, semester) ever generated; never evicted, so the
# registry grows with the number of distinct keys for the life of the process.
_locks: dict[tuple[str, str, str], threading.Lock] = {}


def get_lock(*, program_id: str, batch: str, semester: str) -> threading.Lock:
    key = (str(program_id), str(batch), str(semester))
    with _lock:
        lk = _locks.get(key)
        if lk is None:
            lk = threading.Lock()
            _locks[key] = lk
        return lk


@contextmanager
def key_lock(*, program_id: str, batch: str, semester: str) -> Iterator[None]:
    """Hold the generation lock for one (program, batch, semester). Other keys are not blocked."""
    lk = get_lock(program_id=program_id, batch=batch, semester=semester)
    with lk:
        yield
