"""Tests for CredentialIssuer: in-transaction re-authorization, validation, atomicity."""

import os
import tempfile
import threading
import time
import unittest
import uuid
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from creds.core.errors import (
    AccessDenied,
    Decision,
    DuplicateUsernameError,
    NoSuchUserError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from creds.models import Token, User
from creds.services.authorizer import Authorizer
from creds.services.credential_store import CredentialStore
from creds.services.issuer import CredentialIssuer, missing_fields
from creds.services.registry_store import RegistryStore
from tests.support import ADMIN_SCOPE, count_rows, make_session_factory, seed_user_with_token


class IssuerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.factory = make_session_factory()
        self.authorizer = Authorizer(ADMIN_SCOPE)
        self.issuer = CredentialIssuer(self.factory, self.authorizer)
        self.admin_id, self.admin_token = seed_user_with_token(self.factory)


class TestAddUser(IssuerTestCase):
    def test_round_trip(self) -> None:
        user_id = self.issuer.add_user(self.admin_token, "Ada", "ada99")
        with self.factory() as db:
            user = RegistryStore(db).get_user(user_id)
            self.assertEqual(user.name, "Ada")
            self.assertEqual(user.username, "ada99")
            self.assertEqual(user.tokens, [])

    def test_denied_without_admin_scope(self) -> None:
        with self.factory.begin() as db:
            reader = CredentialStore(db).insert_token(self.admin_id, "read")
        for presented in (reader, uuid.uuid4(), None, "garbage"):
            with self.assertRaises(AccessDenied):
                self.issuer.add_user(presented, "Ada", "ada99")
        self.assertEqual(count_rows(self.factory, User), 1)

    def test_denied_before_validation(self) -> None:
        with self.assertRaises(AccessDenied):
            self.issuer.add_user(uuid.uuid4(), None, None)

    def test_missing_fields_reported_together(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.issuer.add_user(self.admin_token, None, "  ")
        self.assertEqual(ctx.exception.missing, ("name", "username"))
        self.assertEqual(ctx.exception.message, "'name' missing, 'username' missing")
        self.assertEqual(count_rows(self.factory, User), 1)

    def test_duplicate_username(self) -> None:
        self.issuer.add_user(self.admin_token, "Ada", "ada99")
        with self.assertRaises(DuplicateUsernameError):
            self.issuer.add_user(self.admin_token, "Other Ada", "ada99")
        self.assertEqual(count_rows(self.factory, User), 2)

    def test_custom_required_scope(self) -> None:
        with self.factory.begin() as db:
            registrar = CredentialStore(db).insert_token(self.admin_id, "registrar")
        user_id = self.issuer.add_user(registrar, "Bob", "bob", required_scope="registrar")
        self.assertIsInstance(user_id, uuid.UUID)


class TestAddToken(IssuerTestCase):
    def test_example_scenario(self) -> None:
        user_id = self.issuer.add_user(self.admin_token, "Ada", "ada99")
        token_id = self.issuer.add_token(self.admin_token, user_id, "read")
        with self.factory() as db:
            user = RegistryStore(db).get_user(user_id)
            self.assertEqual(
                [(t.id, t.scope, t.user_id) for t in user.tokens],
                [(token_id, "read", user_id)],
            )

    def test_unknown_user_writes_nothing(self) -> None:
        missing = uuid.uuid4()
        with self.assertRaises(NoSuchUserError) as ctx:
            self.issuer.add_token(self.admin_token, missing, "read")
        self.assertEqual(ctx.exception.user_id, missing)
        self.assertEqual(count_rows(self.factory, Token), 1)
        self.assertEqual(count_rows(self.factory, User), 1)

    def test_unknown_user_with_bad_credential_is_denied(self) -> None:
        with self.assertRaises(AccessDenied):
            self.issuer.add_token(uuid.uuid4(), uuid.uuid4(), "read")
        self.assertEqual(count_rows(self.factory, Token), 1)

    def test_missing_fields_reported_together(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.issuer.add_token(self.admin_token, None, None)
        self.assertEqual(ctx.exception.missing, ("scope", "userId"))


class TestDeletes(IssuerTestCase):
    def test_delete_user_cascades_tokens(self) -> None:
        user_id = self.issuer.add_user(self.admin_token, "Ada", "ada99")
        first = self.issuer.add_token(self.admin_token, user_id, "read")
        second = self.issuer.add_token(self.admin_token, user_id, "write")

        self.issuer.delete_user(self.admin_token, user_id)

        with self.factory() as db:
            with self.assertRaises(NotFoundError):
                RegistryStore(db).get_user(user_id)
            for token_id in (first, second):
                with self.assertRaises(NotFoundError):
                    CredentialStore(db).get_token(token_id)
        self.assertEqual(count_rows(self.factory, Token), 1)

    def test_failed_user_delete_keeps_tokens(self) -> None:
        user_id = self.issuer.add_user(self.admin_token, "Ada", "ada99")
        self.issuer.add_token(self.admin_token, user_id, "read")
        with patch.object(RegistryStore, "delete_user", side_effect=StoreError("delete_user")):
            with self.assertRaises(StoreError):
                self.issuer.delete_user(self.admin_token, user_id)
        with self.factory() as db:
            self.assertEqual(len(RegistryStore(db).get_user(user_id).tokens), 1)

    def test_delete_user_denied(self) -> None:
        with self.assertRaises(AccessDenied):
            self.issuer.delete_user(uuid.uuid4(), self.admin_id)
        self.assertEqual(count_rows(self.factory, User), 1)

    def test_delete_token(self) -> None:
        user_id = self.issuer.add_user(self.admin_token, "Ada", "ada99")
        token_id = self.issuer.add_token(self.admin_token, user_id, "read")
        self.issuer.delete_token(self.admin_token, token_id)
        with self.factory() as db:
            with self.assertRaises(NotFoundError):
                CredentialStore(db).get_token(token_id)

    def test_delete_absent_token_is_ok(self) -> None:
        self.issuer.delete_token(self.admin_token, uuid.uuid4())

    def test_admin_can_revoke_itself_once(self) -> None:
        self.issuer.delete_token(self.admin_token, self.admin_token)
        with self.assertRaises(AccessDenied):
            self.issuer.delete_token(self.admin_token, self.admin_token)


class TestRevokedBetweenCheckAndWrite(IssuerTestCase):
    """A token that passed the pre-flight check but was revoked since cannot write."""

    def test_write_fails_after_revoke(self) -> None:
        with self.factory() as db:
            self.assertIs(self.authorizer.authorize(db, self.admin_token), Decision.ALLOWED)

        with self.factory.begin() as db:
            CredentialStore(db).delete_token(self.admin_token)

        with self.assertRaises(AccessDenied):
            self.issuer.add_user(self.admin_token, "Mallory", "mallory")
        self.assertEqual(count_rows(self.factory, User), 1)


class TestStoreFaults(IssuerTestCase):
    def test_untranslated_fault_becomes_store_error(self) -> None:
        fault = OperationalError("INSERT", {}, Exception("disk I/O error"))
        with patch.object(RegistryStore, "insert_user", side_effect=fault):
            with self.assertLogs("creds.services.credential_store", level="ERROR") as logs:
                with self.assertRaises(StoreError) as ctx:
                    self.issuer.add_user(self.admin_token, "Ada", "ada99")
        self.assertEqual(ctx.exception.operation, "add_user")
        self.assertNotIn("disk I/O", ctx.exception.message)
        self.assertIn("Store operation failed", logs.output[0])
        self.assertEqual(count_rows(self.factory, User), 1)


class TestConcurrentAddUser(unittest.TestCase):
    """Concurrent issuance against a file database shared by several connections."""

    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmpdir.name, "creds.db")
        self.factory = make_session_factory(f"sqlite:///{path}")
        self.issuer = CredentialIssuer(self.factory, Authorizer(ADMIN_SCOPE))
        _, self.admin_token = seed_user_with_token(self.factory)

    def tearDown(self) -> None:
        self.factory.kw["bind"].dispose()
        self.tmpdir.cleanup()

    def _race(self, usernames: list[str]) -> list[object]:
        barrier = threading.Barrier(len(usernames))

        def attempt(username: str) -> object:
            barrier.wait()
            try:
                return self.issuer.add_user(self.admin_token, username.title(), username)
            except DuplicateUsernameError as e:
                return e

        with ThreadPoolExecutor(max_workers=len(usernames)) as pool:
            return list(pool.map(attempt, usernames))

    def test_distinct_usernames_both_succeed(self) -> None:
        results = self._race(["ada", "grace"])
        self.assertTrue(all(isinstance(r, uuid.UUID) for r in results))
        self.assertNotEqual(results[0], results[1])
        self.assertEqual(count_rows(self.factory, User), 3)

    def test_same_username_exactly_one_succeeds(self) -> None:
        results = self._race(["ada", "ada"])
        successes = [r for r in results if isinstance(r, uuid.UUID)]
        duplicates = [r for r in results if isinstance(r, DuplicateUsernameError)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(duplicates), 1)
        self.assertEqual(count_rows(self.factory, User), 2)


class PausingAuthorizer(Authorizer):
    """Holds the issuer's transaction open for a moment after its in-transaction check."""

    def __init__(self, admin_scope: str, pause: float = 0.3) -> None:
        super().__init__(admin_scope)
        self.pause = pause
        self.checked = threading.Event()
        self.finished_during_pause: list[str] = []
        self.finished: list[str] = []

    def authorize(self, session, presented_token_id, required_scope=None, lock=False):
        decision = super().authorize(session, presented_token_id, required_scope, lock)
        if lock:
            self.checked.set()
            time.sleep(self.pause)
            self.finished_during_pause = list(self.finished)
        return decision


class TestRevokeRacesWrite(unittest.TestCase):
    """A revoke and a write guarded by the revoked token never interleave."""

    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmpdir.name, "creds.db")
        self.factory = make_session_factory(f"sqlite:///{path}")
        self.pausing = PausingAuthorizer(ADMIN_SCOPE)
        self.slow = CredentialIssuer(self.factory, self.pausing)
        self.fast = CredentialIssuer(self.factory, Authorizer(ADMIN_SCOPE))
        _, self.admin_token = seed_user_with_token(self.factory)

    def tearDown(self) -> None:
        self.factory.kw["bind"].dispose()
        self.tmpdir.cleanup()

    def _run(self, first, second) -> tuple[object, object]:
        def run(name: str, call) -> object:
            try:
                return call()
            except AccessDenied as e:
                return e
            finally:
                self.pausing.finished.append(name)

        def after_check(name: str, call) -> object:
            self.assertTrue(self.pausing.checked.wait(timeout=10))
            return run(name, call)

        with ThreadPoolExecutor(max_workers=2) as pool:
            held = pool.submit(run, *first)
            waiting = pool.submit(after_check, *second)
            return held.result(), waiting.result()

    def test_revoke_waits_for_write_in_progress(self) -> None:
        created, revoked = self._run(
            ("add_user", lambda: self.slow.add_user(self.admin_token, "Ada", "ada99")),
            ("delete_token", lambda: self.fast.delete_token(self.admin_token, self.admin_token)),
        )
        self.assertIsInstance(created, uuid.UUID)
        self.assertIsNone(revoked)
        self.assertEqual(self.pausing.finished_during_pause, [])
        self.assertEqual(count_rows(self.factory, User), 2)
        self.assertEqual(count_rows(self.factory, Token), 0)

    def test_write_after_revoke_is_denied(self) -> None:
        revoked, created = self._run(
            ("delete_token", lambda: self.slow.delete_token(self.admin_token, self.admin_token)),
            ("add_user", lambda: self.fast.add_user(self.admin_token, "Mallory", "mallory")),
        )
        self.assertIsNone(revoked)
        self.assertIsInstance(created, AccessDenied)
        self.assertEqual(self.pausing.finished_during_pause, [])
        self.assertEqual(count_rows(self.factory, User), 1)
        self.assertEqual(count_rows(self.factory, Token), 0)


class TestMissingFields(unittest.TestCase):
    def test_blank_and_none_are_missing(self) -> None:
        self.assertEqual(
            missing_fields({"a": None, "b": "", "c": " ", "d": "x", "e": uuid.uuid4()}),
            {"a", "b", "c"},
        )


if __name__ == "__main__":
    unittest.main()
