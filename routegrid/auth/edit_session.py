"""Edit session — the shared-secret gate in front of write operations.

This is a convenience lock, not access control: the secret is a single
static value from configuration. Replace ``StaticSecretChecker`` with a
real auth provider before exposing the grid to untrusted users.
"""

import hmac
from typing import Protocol

from ..engine.errors import ProtectedMutationError
from ..utils.logging import get_logger

logger = get_logger("auth.edit_session")


class SecretChecker(Protocol):
    def check_secret(self, candidate: str) -> bool: ...


class StaticSecretChecker:
    """Compares a candidate against one configured secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("edit secret must not be empty")
        self._secret = secret

    def check_secret(self, candidate: str) -> bool:
        if not candidate:
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self._secret.encode("utf-8"))


class EditSession:
    """Explicit capability object for edit mode, passed to whoever needs it."""

    def __init__(self, checker: SecretChecker):
        self._checker = checker
        self._editing = False

    @property
    def editing(self) -> bool:
        return self._editing

    def request_edit(self, secret: str) -> bool:
        """Enter edit mode when the secret is accepted."""
        if self._checker.check_secret(secret):
            self._editing = True
            logger.info("edit_mode_entered")
            return True
        logger.warning("edit_mode_denied")
        return False

    def exit_edit(self) -> None:
        """Leave edit mode. The secret must be entered again to resume."""
        if self._editing:
            logger.info("edit_mode_exited")
        self._editing = False

    def require_edit(self, action: str) -> None:
        if not self._editing:
            raise ProtectedMutationError(f"Edit mode is required to {action}")
