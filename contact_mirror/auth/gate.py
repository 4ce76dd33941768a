"""
Authorization gate for access to the contact store.

The sync engine never reads or writes contacts unless the gate reports
AUTHORIZED. Two gates are provided:
- StaticAuthorizationGate: fixed status, for tests and embedding
- FileAuthorizationGate: persists the user's grant in the config directory
"""

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# File (inside the config dir) holding the persisted grant
ACCESS_FILE = "access.json"


class AuthorizationStatus(str, Enum):
    """Access state for the contact store."""

    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    RESTRICTED = "restricted"
    AUTHORIZED = "authorized"


class AuthorizationError(Exception):
    """Raised when the persisted authorization state cannot be handled."""

    pass


class AuthorizationGate:
    """Interface of an authorization gate."""

    def current_status(self) -> AuthorizationStatus:
        raise NotImplementedError

    def request_access(self) -> bool:
        """Ask for access. Returns True when access is granted."""
        raise NotImplementedError

    def is_authorized(self) -> bool:
        return self.current_status() == AuthorizationStatus.AUTHORIZED


class StaticAuthorizationGate(AuthorizationGate):
    """Gate with a fixed status; request_access only succeeds if authorized."""

    def __init__(self, status: AuthorizationStatus = AuthorizationStatus.AUTHORIZED):
        self.status = status

    def current_status(self) -> AuthorizationStatus:
        return self.status

    def request_access(self) -> bool:
        return self.status == AuthorizationStatus.AUTHORIZED


class FileAuthorizationGate(AuthorizationGate):
    """
    Gate that remembers the user's decision in <config_dir>/access.json.

    Attributes:
        config_dir: Directory holding the access file
        confirm: Callable asking the user for access, returns True to grant

    Usage:
        gate = FileAuthorizationGate(
            config_dir, confirm=lambda: click.confirm("Allow access?")
        )
        if gate.current_status() == AuthorizationStatus.NOT_DETERMINED:
            gate.request_access()
    """

    def __init__(
        self,
        config_dir: Path,
        confirm: Optional[Callable[[], bool]] = None,
    ):
        self.config_dir = Path(config_dir)
        self.confirm = confirm

    @property
    def access_path(self) -> Path:
        return self.config_dir / ACCESS_FILE

    def current_status(self) -> AuthorizationStatus:
        if not self.access_path.exists():
            return AuthorizationStatus.NOT_DETERMINED

        try:
            data = json.loads(self.access_path.read_text(encoding="utf-8"))
            return AuthorizationStatus(data["status"])
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Invalid access file {self.access_path}: {e}")
            return AuthorizationStatus.NOT_DETERMINED

    def request_access(self) -> bool:
        """
        Ask for access and persist the answer.

        A restricted status cannot be changed by the user. Without a confirm
        callable, access is denied.
        """
        status = self.current_status()
        if status == AuthorizationStatus.AUTHORIZED:
            return True
        if status == AuthorizationStatus.RESTRICTED:
            return False

        granted = bool(self.confirm()) if self.confirm else False
        self._save(
            AuthorizationStatus.AUTHORIZED if granted else AuthorizationStatus.DENIED
        )
        return granted

    def revoke(self) -> bool:
        """
        Forget the stored decision.

        Returns:
            True if a decision was removed, False if none existed
        """
        if self.access_path.exists():
            self.access_path.unlink()
            logger.info("Cleared stored contact access decision")
            return True
        return False

    def _save(self, status: AuthorizationStatus) -> None:
        try:
            self.config_dir.mkdir(parents=True, mode=0o700, exist_ok=True)
            self.access_path.write_text(
                json.dumps(
                    {
                        "status": status.value,
                        "updated": datetime.now(timezone.utc).isoformat(),
                    }
                ),
                encoding="utf-8",
            )
            self.access_path.chmod(0o600)
        except OSError as e:
            raise AuthorizationError(f"Failed to save access decision: {e}") from e
        logger.info(f"Contact access {status.value}")
