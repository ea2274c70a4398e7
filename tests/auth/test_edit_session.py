"""Tests for the edit-mode session and its secret checker."""

import pytest

from routegrid.auth.edit_session import EditSession, StaticSecretChecker
from routegrid.engine.errors import ProtectedMutationError


class TestStaticSecretChecker:

    def test_matches_only_exact_secret(self):
        checker = StaticSecretChecker("s3cret")
        assert checker.check_secret("s3cret")
        assert not checker.check_secret("S3CRET")
        assert not checker.check_secret("")

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            StaticSecretChecker("")


class TestEditSession:

    def test_starts_locked(self):
        session = EditSession(StaticSecretChecker("pw"))
        assert not session.editing
        with pytest.raises(ProtectedMutationError):
            session.require_edit("delete row")

    def test_enter_and_exit(self):
        session = EditSession(StaticSecretChecker("pw"))
        assert not session.request_edit("nope")
        assert not session.editing
        assert session.request_edit("pw")
        session.require_edit("delete row")
        session.exit_edit()
        assert not session.editing

    def test_custom_checker(self):
        class AlwaysYes:
            def check_secret(self, candidate):
                return True

        session = EditSession(AlwaysYes())
        assert session.request_edit("anything")
