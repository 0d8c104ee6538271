"""
Session Store module for the active discovery session id.

The store holds at most one session identifier so that a restarted
console can resume tracking a search that is still running remotely,
instead of starting a duplicate. The file-backed store protects its
payload with an HMAC to detect tampering.
"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .exceptions import PersistenceError, TamperingError


class SessionStore:
    """
    Persistent single-slot storage for the active session id.

    Stores the id to disk as JSON with HMAC validation. There is no
    expiry: a stored id stays until it is cleared.
    """

    VERSION = 1

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        """
        Initialize the session store.

        Args:
            file_path: Path to the session file (JSON format)
            hmac_secret: Secret key for HMAC computation
        """
        self._file_path = file_path
        self._hmac_secret = hmac_secret.encode("utf-8")

    def load(self) -> Optional[str]:
        """
        Load the stored session id and validate its HMAC.

        Returns:
            The session id, or None if nothing is stored

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            return None

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse session file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read session file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict):
            raise PersistenceError(
                code="parse_error",
                message="Session file does not contain a JSON object",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        data_for_hmac = {
            "version": raw_data.get("version"),
            "session_id": raw_data.get("session_id"),
            "saved_at": raw_data.get("saved_at"),
        }
        computed_hmac = self.compute_hmac(data_for_hmac)

        if not self.validate_hmac(str(stored_hmac), computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - session file may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        session_id = raw_data.get("session_id")
        if not session_id:
            return None
        return str(session_id)

    def save(self, session_id: str) -> None:
        """
        Store a session id, replacing any previous one.

        Raises:
            PersistenceError: If the id is empty or the file cannot be written
        """
        if not session_id:
            raise PersistenceError(
                code="empty_session_id",
                message="Refusing to store an empty session id",
            )

        data_for_hmac = {
            "version": self.VERSION,
            "session_id": session_id,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }
        output_data = dict(data_for_hmac, hmac=self.compute_hmac(data_for_hmac))

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write session file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def clear(self) -> None:
        """
        Forget the stored session id. Clearing an empty store is a no-op.

        Raises:
            PersistenceError: If the file exists but cannot be removed
        """
        try:
            self._file_path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to remove session file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def compute_hmac(self, data: dict) -> str:
        """
        Compute HMAC-SHA256 over serialized data.

        Args:
            data: Dictionary to compute HMAC over

        Returns:
            Hexadecimal HMAC string
        """
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Validate HMAC using constant-time comparison."""
        return hmac.compare_digest(stored_hmac, computed_hmac)

    @property
    def file_path(self) -> Path:
        """Get the session file path."""
        return self._file_path


class MemorySessionStore:
    """Session store kept in memory; lives exactly as long as the object."""

    def __init__(self, session_id: Optional[str] = None) -> None:
        self._session_id = session_id or None

    def load(self) -> Optional[str]:
        return self._session_id

    def save(self, session_id: str) -> None:
        if not session_id:
            raise PersistenceError(
                code="empty_session_id",
                message="Refusing to store an empty session id",
            )
        self._session_id = session_id

    def clear(self) -> None:
        self._session_id = None
