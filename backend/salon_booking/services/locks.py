"""
Critical sections for booking writes

A booking checks for conflicts and writes inside the same section, so two
requests for one employee and day cannot both pass the check. In-process
locks cover a single worker; on PostgreSQL a transaction-scoped advisory
lock covers every worker and is released when the transaction ends.
"""
import hashlib
import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Hashable

from sqlalchemy import text
from sqlalchemy.orm import Session

_registry_lock = threading.Lock()
_locks: Dict[Hashable, list] = {}  # key -> [lock, holders]


@contextmanager
def _process_lock(key: Hashable):
    with _registry_lock:
        entry = _locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1

    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[key]


def advisory_key(key: Hashable) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock"""
    digest = hashlib.blake2b(repr(key).encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def _advisory_lock(db: Session, key: Hashable):
    if db.get_bind().dialect.name == "postgresql":
        db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_key(key)})


@contextmanager
def employee_day_lock(db: Session, employee_id: int, target_date: date):
    """
    Serialize conflict check + write for one employee calendar day.
    The caller commits or rolls back before leaving the block.
    """
    key = ("employee-day", employee_id, target_date.isoformat())
    with _process_lock(key):
        _advisory_lock(db, key)
        yield


@contextmanager
def appointment_lock(db: Session, appointment_id: int):
    """Serialize status changes and reschedules of one appointment"""
    key = ("appointment", appointment_id)
    with _process_lock(key):
        _advisory_lock(db, key)
        yield
