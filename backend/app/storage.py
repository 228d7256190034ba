from __future__ import annotations

import json
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any
from uuid import uuid4

import structlog
from pydantic import ValidationError

from .models import Session, UiTree, VersionRecord, utc_now_iso
from .tree_codec import default_tree

logger = structlog.get_logger(__name__)

SESSION_STORE_VERSION = 1


def new_version_id() -> str:
    return f"ver_{uuid4().hex[:8]}_{int(time.time() * 1000):x}"


def new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


@dataclass
class RollbackResult:
    ok: bool
    version: VersionRecord | None = None
    error: str = ""


class SessionStore:
    """Sessions and their append-only version lists.

    State lives in memory; when ``state_file`` is set every mutation is also
    written to it atomically, and a missing, empty or corrupt file starts a
    fresh store.
    """

    def __init__(self, state_file: Path | None = None) -> None:
        self.state_file = state_file
        self._lock = Lock()
        self._sessions: dict[str, Session] = {}
        if self.state_file is not None:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            self._sessions = self._normalize_state(self._read_state())
            self._write_state()

    def _read_state(self) -> Any:
        if self.state_file is None or not self.state_file.exists():
            return {}
        raw = self.state_file.read_text(encoding="utf-8")
        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Self-heal corrupted state files (for example interrupted writes).
            logger.warning("state_file_corrupt", path=str(self.state_file))
            return {}

    @staticmethod
    def _normalize_state(raw_state: Any) -> dict[str, Session]:
        sessions: dict[str, Session] = {}
        raw_sessions = raw_state.get("sessions") if isinstance(raw_state, dict) else None
        if not isinstance(raw_sessions, dict):
            return sessions
        for session_id, raw_session in raw_sessions.items():
            try:
                session = Session.model_validate(raw_session)
            except ValidationError:
                logger.warning("state_session_dropped", session_id=str(session_id))
                continue
            sessions[session.id] = session
        return sessions

    def _write_state(self) -> None:
        if self.state_file is None:
            return
        state = {
            "session_store_version": SESSION_STORE_VERSION,
            "sessions": {session_id: session.model_dump(mode="json") for session_id, session in self._sessions.items()},
        }
        payload = json.dumps(state, indent=2, ensure_ascii=False)

        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.state_file.parent,
                delete=False,
                prefix=f"{self.state_file.name}.",
                suffix=".tmp",
            ) as tmp_file:
                tmp_file.write(payload)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
                tmp_path = Path(tmp_file.name)

            os.replace(tmp_path, self.state_file)
        finally:
            if tmp_path and tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

    def reset(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._write_state()

    def create_session(self, session_id: str | None = None) -> Session:
        with self._lock:
            session = Session(id=session_id or new_session_id())
            self._sessions[session.id] = session
            self._write_state()
        logger.info("session_created", session_id=session.id)
        return session

    def get_session(self, session_id: str | None) -> Session | None:
        if not session_id:
            return None
        with self._lock:
            return self._sessions.get(session_id)

    def get_or_create_session(self, session_id: str | None) -> Session:
        requested = session_id.strip() if isinstance(session_id, str) else ""
        existing = self.get_session(requested)
        if existing is not None:
            return existing
        return self.create_session(requested or None)

    def create_version(self, session_id: str, **fields: Any) -> VersionRecord:
        """Builds an unsaved record with a fresh id."""
        return VersionRecord(id=new_version_id(), session_id=session_id, created_at=utc_now_iso(), **fields)

    def add_version(self, session_id: str, version: VersionRecord) -> VersionRecord:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Session not found: {session_id}")
            session.versions.append(version)
            session.current_version_id = version.id
            session.updated_at = utc_now_iso()
            self._write_state()
        logger.info("version_saved", session_id=session_id, version_id=version.id, mode=version.mode)
        return version

    def save_version(self, session_id: str, version: VersionRecord) -> VersionRecord:
        """Appends ``version`` as the child of the session's current version."""
        session = self.get_session(session_id)
        parent_id = session.current_version_id if session is not None else None
        return self.add_version(session_id, version.model_copy(update={"parent_version_id": parent_id}))

    def get_version(self, session_id: str, version_id: str) -> VersionRecord | None:
        session = self.get_session(session_id)
        if session is None:
            return None
        return next((version for version in session.versions if version.id == version_id), None)

    def get_current_version(self, session_id: str) -> VersionRecord | None:
        session = self.get_session(session_id)
        if session is None or not session.current_version_id:
            return None
        return self.get_version(session_id, session.current_version_id)

    def list_versions(self, session_id: str) -> list[VersionRecord]:
        session = self.get_session(session_id)
        if session is None:
            return []
        return list(reversed(session.versions))

    def rollback(self, session_id: str, version_id: str) -> RollbackResult:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return RollbackResult(ok=False, error="Session not found.")
            target = next((version for version in session.versions if version.id == version_id), None)
            if target is None:
                return RollbackResult(ok=False, error="Version not found.")
            session.current_version_id = target.id
            session.updated_at = utc_now_iso()
            self._write_state()
        logger.info("rollback_applied", session_id=session_id, version_id=version_id)
        return RollbackResult(ok=True, version=target)

    def get_latest_tree(self, session_id: str) -> UiTree:
        current = self.get_current_version(session_id)
        if current is not None and current.ui_ast is not None:
            return current.ui_ast.model_copy(deep=True)
        return default_tree(1)
