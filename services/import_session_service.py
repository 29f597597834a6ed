"""
Temporary storage for import sessions.
Stores sessions in memory as JSON with TTL expiration.
Single-server only; a session is serialized and re-validated on every
round trip so stored state never aliases live objects.
"""
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional

import structlog

from config.settings import get_settings
from exceptions import ImportSessionNotFoundError
from models.inventory_import import ImportSession

logger = structlog.get_logger(__name__)

_sessions: dict[str, tuple[datetime, str, str]] = {}
_locks: dict[str, threading.RLock] = {}
_registry_lock = threading.Lock()


def store_session(session: ImportSession, ttl_minutes: Optional[int] = None) -> str:
    """Store a session (new or updated) and restart its TTL. Returns session_id."""
    ttl = ttl_minutes if ttl_minutes is not None else get_settings().import_session_ttl_minutes
    expires_at = datetime.now() + timedelta(minutes=ttl)
    payload = session.model_dump_json()

    with _registry_lock:
        _sessions[session.session_id] = (expires_at, session.file_hash, payload)
        _locks.setdefault(session.session_id, threading.RLock())
        _cleanup_expired()

    logger.debug("import_session_stored", session_id=session.session_id, ttl_minutes=ttl)
    return session.session_id


def load_session(session_id: str) -> ImportSession:
    """
    Load a session by id.

    Raises:
        ImportSessionNotFoundError: If unknown or expired
    """
    with _registry_lock:
        entry = _sessions.get(session_id)
        if entry is not None and datetime.now() > entry[0]:
            _drop(session_id)
            entry = None

    if entry is None:
        logger.warning("import_session_not_found", session_id=session_id)
        raise ImportSessionNotFoundError(session_id)

    return ImportSession.model_validate_json(entry[2])


def delete_session(session_id: str) -> bool:
    """Remove a session. Returns False if it was already gone."""
    with _registry_lock:
        existed = session_id in _sessions
        _drop(session_id)

    if existed:
        logger.info("import_session_deleted", session_id=session_id)
    return existed


def find_sessions_by_hash(file_hash: str) -> list[str]:
    """Ids of live sessions created from a file with this content hash."""
    now = datetime.now()
    with _registry_lock:
        return [
            session_id
            for session_id, (expires_at, stored_hash, _) in _sessions.items()
            if expires_at >= now and stored_hash == file_hash
        ]


@contextmanager
def session_lock(session_id: str) -> Iterator[None]:
    """
    Serialize read-modify-write cycles on one session.

    Different sessions never block each other.
    """
    with _registry_lock:
        lock = _locks.setdefault(session_id, threading.RLock())
    with lock:
        yield


def clear_sessions() -> None:
    """Drop every session."""
    with _registry_lock:
        _sessions.clear()
        _locks.clear()


def _drop(session_id: str) -> None:
    _sessions.pop(session_id, None)
    _locks.pop(session_id, None)


def _cleanup_expired() -> None:
    """Remove all expired entries. Caller holds the registry lock."""
    now = datetime.now()
    expired = [k for k, (exp, _, _) in _sessions.items() if now > exp]
    for k in expired:
        _drop(k)
