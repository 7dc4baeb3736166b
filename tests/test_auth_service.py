"""Tests for vidtube.services.auth against an in-memory database."""

import unittest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from vidtube.core.errors import ApiError, ErrorKind
from vidtube.core.security import verify_password
from vidtube.models import User
from vidtube.services.accounts import AccountStore
from vidtube.services.auth import AuthService, RequestCredentials
from vidtube.services.session import AccountSession, SessionState
from tests.support import TEST_ROUNDS, create_account, make_issuer, make_session_factory


class AuthServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.account = create_account(self.db)
        self.issuer = make_issuer()
        self.service = AuthService(AccountStore(self.db), self.issuer, TEST_ROUNDS)

    def tearDown(self) -> None:
        self.db.close()

    def stored_account(self) -> User:
        self.db.expire_all()
        return self.db.get(User, self.account.id)

    def stored_refresh_token(self) -> str | None:
        return self.stored_account().refresh_token


class TestLogin(AuthServiceTestCase):
    def test_login_by_username_persists_refresh_token(self) -> None:
        outcome = self.service.login("ana", None, "p@ss1234")
        self.assertTrue(outcome.ok)
        result = outcome.value
        claims = self.issuer.verify(result.access_token, "access")
        self.assertEqual(self.issuer.account_id(claims), self.account.id)
        self.assertEqual(self.stored_refresh_token(), result.refresh_token)

    def test_login_by_email_is_case_insensitive(self) -> None:
        outcome = self.service.login(None, "  ANA@X.com ", "p@ss1234")
        self.assertTrue(outcome.ok)

    def test_login_result_user_is_sanitized(self) -> None:
        user = self.service.login("ana", None, "p@ss1234").value.user
        dumped = user.model_dump(by_alias=True)
        self.assertEqual(dumped["username"], "ana")
        for forbidden in ("password", "passwordHash", "password_hash", "refreshToken", "refresh_token"):
            self.assertNotIn(forbidden, dumped)

    def test_wrong_password_is_unauthorized_and_persists_nothing(self) -> None:
        outcome = self.service.login("ana", None, "wrong-pass")
        self.assertEqual(outcome.failure.kind, ErrorKind.UNAUTHORIZED)
        self.assertIsNone(self.stored_refresh_token())

    def test_unknown_account_is_not_found(self) -> None:
        outcome = self.service.login("bob", "bob@x.com", "p@ss1234")
        self.assertEqual(outcome.failure.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(outcome.failure.message, "User does not exist")
        self.assertIsNone(self.stored_refresh_token())

    def test_missing_identifier_is_bad_request(self) -> None:
        outcome = self.service.login(None, "  ", "p@ss1234")
        self.assertEqual(outcome.failure.kind, ErrorKind.BAD_REQUEST)

    def test_second_login_invalidates_first_refresh_token(self) -> None:
        first = self.service.login("ana", None, "p@ss1234").value
        second = self.service.login("ana", None, "p@ss1234").value
        self.assertEqual(self.stored_refresh_token(), second.refresh_token)
        replay = self.service.refresh(first.refresh_token)
        self.assertEqual(replay.failure.message, "Refresh Token is Expired or Used")

    def test_persistence_failure_is_internal(self) -> None:
        with patch.object(
            AccountStore,
            "set_refresh_token",
            side_effect=OperationalError("UPDATE", {}, Exception("db down")),
        ):
            outcome = self.service.login("ana", None, "p@ss1234")
        self.assertEqual(outcome.failure.kind, ErrorKind.INTERNAL)
        self.assertIsNone(self.stored_refresh_token())


class TestRefreshRotation(AuthServiceTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.r1 = self.service.login("ana", None, "p@ss1234").value.refresh_token

    def test_rotation_then_reuse_then_continue(self) -> None:
        first = self.service.refresh(self.r1)
        self.assertTrue(first.ok)
        r2 = first.value.refresh_token
        self.assertNotEqual(r2, self.r1)
        self.assertEqual(self.stored_refresh_token(), r2)

        replay = self.service.refresh(self.r1)
        self.assertFalse(replay.ok)
        self.assertEqual(replay.failure.kind, ErrorKind.UNAUTHORIZED)
        self.assertEqual(replay.failure.message, "Refresh Token is Expired or Used")
        self.assertEqual(self.stored_refresh_token(), r2)

        self.assertTrue(self.service.refresh(r2).ok)

    def test_absent_token_is_unauthorized(self) -> None:
        for presented in (None, "", "   "):
            outcome = self.service.refresh(presented)
            self.assertEqual(outcome.failure.kind, ErrorKind.UNAUTHORIZED)
            self.assertEqual(outcome.failure.message, "Unauthorized request")

    def test_invalid_token_is_unauthorized(self) -> None:
        outcome = self.service.refresh("not-a-jwt")
        self.assertEqual(outcome.failure.message, "Invalid Refresh Token")
        self.assertEqual(self.stored_refresh_token(), self.r1)

    def test_access_token_cannot_be_used_to_refresh(self) -> None:
        access = self.issuer.issue_access_token(self.account)
        outcome = self.service.refresh(access)
        self.assertEqual(outcome.failure.message, "Invalid Refresh Token")

    def test_deleted_account_is_unauthorized(self) -> None:
        self.db.delete(self.db.get(User, self.account.id))
        self.db.commit()
        outcome = self.service.refresh(self.r1)
        self.assertEqual(outcome.failure.message, "Invalid Refresh Token")

    def test_lost_race_is_reported_as_reuse(self) -> None:
        # Another request rotates between our read and our conditional write.
        with patch.object(AccountStore, "swap_refresh_token", return_value=False):
            outcome = self.service.refresh(self.r1)
        self.assertEqual(outcome.failure.message, "Refresh Token is Expired or Used")

    def test_swap_only_succeeds_against_current_value(self) -> None:
        store = AccountStore(self.db)
        self.assertTrue(store.swap_refresh_token(self.account.id, self.r1, "r2"))
        self.assertFalse(store.swap_refresh_token(self.account.id, self.r1, "r3"))
        self.assertEqual(self.stored_refresh_token(), "r2")


class TestLogout(AuthServiceTestCase):
    def test_logout_blocks_later_refresh(self) -> None:
        r1 = self.service.login("ana", None, "p@ss1234").value.refresh_token
        self.assertTrue(self.service.logout(self.account.id).ok)
        self.assertIsNone(self.stored_refresh_token())
        outcome = self.service.refresh(r1)
        self.assertEqual(outcome.failure.kind, ErrorKind.UNAUTHORIZED)

    def test_logout_twice_succeeds(self) -> None:
        self.service.login("ana", None, "p@ss1234")
        self.assertTrue(self.service.logout(self.account.id).ok)
        first_stamp = self.stored_account().session_ended_at
        self.assertTrue(self.service.logout(self.account.id).ok)
        self.assertIsNotNone(first_stamp)
        self.assertEqual(self.stored_account().session_ended_at, first_stamp)

    def test_session_state_follows_login_and_logout(self) -> None:
        self.assertEqual(
            AccountSession.from_account(self.stored_account()).state, SessionState.ANONYMOUS
        )
        self.service.login("ana", None, "p@ss1234")
        self.assertEqual(
            AccountSession.from_account(self.stored_account()).state, SessionState.AUTHENTICATED
        )
        self.service.logout(self.account.id)
        self.assertEqual(
            AccountSession.from_account(self.stored_account()).state, SessionState.REVOKED
        )
        self.service.login("ana", None, "p@ss1234")
        account = self.stored_account()
        self.assertIsNone(account.session_ended_at)
        self.assertEqual(AccountSession.from_account(account).state, SessionState.AUTHENTICATED)


class TestChangePassword(AuthServiceTestCase):
    def test_persistence_failure_is_internal(self) -> None:
        with patch.object(
            AccountStore,
            "update",
            side_effect=OperationalError("UPDATE", {}, Exception("db down")),
        ):
            outcome = self.service.change_password(self.account.id, "p@ss1234", "n3w-secret!")
        self.assertEqual(outcome.failure.kind, ErrorKind.INTERNAL)
        self.assertTrue(verify_password("p@ss1234", self.stored_account().password_hash))

    def test_change_password_keeps_session(self) -> None:
        r1 = self.service.login("ana", None, "p@ss1234").value.refresh_token
        outcome = self.service.change_password(self.account.id, "p@ss1234", "n3w-secret!")
        self.assertTrue(outcome.ok)
        self.db.expire_all()
        stored = self.db.get(User, self.account.id)
        self.assertTrue(verify_password("n3w-secret!", stored.password_hash))
        self.assertEqual(stored.refresh_token, r1)
        self.assertTrue(self.service.login("ana", None, "n3w-secret!").ok)

    def test_wrong_old_password_raises_bad_request_on_unwrap(self) -> None:
        outcome = self.service.change_password(self.account.id, "wrong-pass", "n3w-secret!")
        with self.assertRaises(ApiError) as ctx:
            outcome.unwrap()
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.message, "Invalid old password")


class TestAuthenticate(AuthServiceTestCase):
    def test_cookie_preferred_over_bearer(self) -> None:
        token = self.issuer.issue_access_token(self.account)
        outcome = self.service.authenticate(
            RequestCredentials(cookie_token=token, bearer_token="garbage")
        )
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.value.user.username, "ana")

    def test_bearer_used_when_no_cookie(self) -> None:
        token = self.issuer.issue_access_token(self.account)
        outcome = self.service.authenticate(RequestCredentials(bearer_token=token))
        self.assertEqual(outcome.value.account_id, self.account.id)

    def test_missing_token(self) -> None:
        outcome = self.service.authenticate(RequestCredentials())
        self.assertEqual(outcome.failure.kind, ErrorKind.UNAUTHORIZED)
        self.assertEqual(outcome.failure.message, "Unauthorized request")

    def test_refresh_token_is_not_an_access_token(self) -> None:
        token = self.issuer.issue_refresh_token(self.account)
        outcome = self.service.authenticate(RequestCredentials(bearer_token=token))
        self.assertEqual(outcome.failure.message, "Invalid Access Token")

    def test_deleted_account_is_unauthorized(self) -> None:
        token = self.issuer.issue_access_token(self.account)
        self.db.delete(self.db.get(User, self.account.id))
        self.db.commit()
        outcome = self.service.authenticate(RequestCredentials(bearer_token=token))
        self.assertEqual(outcome.failure.kind, ErrorKind.UNAUTHORIZED)

    def test_does_not_touch_stored_refresh_token(self) -> None:
        r1 = self.service.login("ana", None, "p@ss1234").value.refresh_token
        token = self.issuer.issue_access_token(self.account)
        self.service.authenticate(RequestCredentials(bearer_token=token))
        self.assertEqual(self.stored_refresh_token(), r1)


if __name__ == "__main__":
    unittest.main()
