from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import re
import tempfile
from contextlib import contextmanager, suppress
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Iterator
from uuid import uuid4

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError as ModelValidationError

from .errors import CorruptDataError, StorageIOError, ValidationError
from .models import ConversationContext, Message

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")

MAX_STEM_LENGTH = 128
DIGEST_LENGTH = 16
RECORD_SUFFIX = ".json"


def sanitize_session_id(session_id: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``_``."""
    return _UNSAFE_CHARS.sub("_", session_id)


def record_stem(session_id: str) -> str:
    """
    File stem for a session record.

    Identifiers that are already safe and short map to themselves. Anything
    that sanitization altered, or that is too long, gets a ``.<digest>``
    suffix of the original identifier so that ``a*b`` and ``a_b`` land in
    different files. ``.`` never appears in a sanitized stem.
    """
    sanitized = sanitize_session_id(session_id)
    if sanitized == session_id and len(sanitized) <= MAX_STEM_LENGTH:
        return sanitized
    digest = hashlib.sha256(session_id.encode("utf-8", "surrogatepass")).hexdigest()[:DIGEST_LENGTH]
    return f"{sanitized[:MAX_STEM_LENGTH]}.{digest}"


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _SessionLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


class FileContextStore:
    """
    Session-scoped conversation context persisted as one JSON file per session.

    Mutating operations on the same session run under one lock per record
    file; reads take no lock because records are only ever replaced whole.
    A full save waits for in-flight appends on the same session.
    """

    def __init__(self, base_path: str | Path, encryption_key: str | None = None) -> None:
        self.base_path = Path(base_path)
        self._locks: dict[str, _SessionLock] = {}
        self._locks_guard = Lock()
        self._fernet = Fernet(self._derive_key(encryption_key)) if encryption_key else None
        self._ensure_root()

    @staticmethod
    def _derive_key(seed: str) -> bytes:
        digest = hashlib.sha256(seed.encode()).digest()
        return base64.urlsafe_b64encode(digest)

    def _ensure_root(self) -> None:
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(
                f"Failed to create context storage directory {self.base_path}: {exc}",
                path=str(self.base_path),
            ) from exc

    @staticmethod
    def _validate(session_id: str) -> None:
        if not isinstance(session_id, str) or not session_id:
            raise ValidationError("session_id must be a non-empty string")

    def path_for(self, session_id: str) -> Path:
        self._validate(session_id)
        return self.base_path / f"{record_stem(session_id)}{RECORD_SUFFIX}"

    @contextmanager
    def _session_lock(self, path: Path) -> Iterator[None]:
        # Entries live only while some caller holds or waits on them.
        with self._locks_guard:
            entry = self._locks.setdefault(path.name, _SessionLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[path.name]

    def get_context(self, session_id: str) -> ConversationContext | None:
        """Return the stored context, or ``None`` when the session has no record."""
        return self._read(session_id, self.path_for(session_id))

    def context_exists(self, session_id: str) -> bool:
        return self.path_for(session_id).is_file()

    def save_context(self, session_id: str, context: ConversationContext) -> ConversationContext:
        """Replace whatever is stored for ``session_id`` with ``context``."""
        path = self.path_for(session_id)
        with self._session_lock(path):
            try:
                previous = self._read(session_id, path)
            except CorruptDataError:
                logger.warning("Overwriting unreadable context record %s", path.name)
                previous = None
            stored = self._stamp(session_id, context.messages, context.metadata, previous)
            self._write(session_id, path, stored)
        return stored

    def add_message(self, session_id: str, message: Message) -> ConversationContext:
        """Append ``message`` to the session, creating the context if needed."""
        path = self.path_for(session_id)
        if message.id is None:
            message = message.model_copy(update={"id": uuid4().hex})
        with self._session_lock(path):
            current = self._read(session_id, path)
            if current is None:
                current = ConversationContext(session_id=session_id)
            stored = self._stamp(session_id, [*current.messages, message], current.metadata, current)
            self._write(session_id, path, stored)
        return stored

    def delete_context(self, session_id: str) -> bool:
        path = self.path_for(session_id)
        with self._session_lock(path):
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise StorageIOError(
                    f"Failed to delete context file for session {session_id}: {exc}",
                    session_id=session_id,
                    path=str(path),
                ) from exc
        logger.debug("Deleted context record %s", path.name)
        return True

    def _stamp(
        self,
        session_id: str,
        messages: list[Message],
        metadata: dict[str, Any],
        previous: ConversationContext | None,
    ) -> ConversationContext:
        previous_metadata = previous.metadata if previous else {}
        now = datetime.now(timezone.utc)
        last_update = _parse_timestamp(previous_metadata.get("updatedAt"))
        if last_update is not None and now <= last_update:
            now = last_update + timedelta(microseconds=1)

        stamped = dict(metadata)
        stamped["createdAt"] = stamped.get("createdAt") or previous_metadata.get("createdAt") or now.isoformat()
        stamped["updatedAt"] = now.isoformat()
        return ConversationContext(session_id=session_id, messages=list(messages), metadata=stamped)

    def _read(self, session_id: str, path: Path) -> ConversationContext | None:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageIOError(
                f"Failed to read context file for session {session_id}: {exc}",
                session_id=session_id,
                path=str(path),
            ) from exc

        try:
            if self._fernet is not None:
                raw = self._fernet.decrypt(raw)
            context = ConversationContext.model_validate(json.loads(raw.decode("utf-8")))
        except (InvalidToken, ValueError, ModelValidationError) as exc:
            raise CorruptDataError(
                f"Context file for session {session_id} is not a valid context record: {exc}",
                session_id=session_id,
                path=str(path),
            ) from exc
        logger.debug("Loaded %d messages from %s", len(context.messages), path.name)
        return context

    def _write(self, session_id: str, path: Path, context: ConversationContext) -> None:
        payload = json.dumps(context.to_record(), indent=2).encode("utf-8")
        if self._fernet is not None:
            payload = self._fernet.encrypt(payload)

        self._ensure_root()
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb", dir=self.base_path, prefix=f".{path.stem}.", suffix=".tmp", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                with suppress(OSError):
                    os.unlink(tmp_name)
            raise StorageIOError(
                f"Failed to save context file for session {session_id}: {exc}",
                session_id=session_id,
                path=str(path),
            ) from exc
        logger.debug("Saved %d messages to %s", len(context.messages), path.name)
