"""
AuthenticationServiceのユニットテスト

サイレント→対話型のサインイン、サインアウト、現在のアカウントの保持を検証する
"""

import json
import unittest
from unittest.mock import patch

from fakes import FakeAuthenticator, InMemoryTokenCacheStore, make_account, make_record

from tokenkeep.auth.base import AuthenticatorError, InteractionRequiredError, UserCancelledError
from tokenkeep.config.settings import ClientConfiguration
from tokenkeep.errors import AuthenticationException, CacheException
from tokenkeep.models import SYSTEM_ACCOUNT, SignInMode
from tokenkeep.service import AuthenticationService


class ServiceTestCase(unittest.IsolatedAsyncioTestCase):
    """サービス生成の共通処理"""

    def setUp(self):
        self.configuration = ClientConfiguration.create("client-id-0001", "contoso.example", scopes=["User.Read"])
        self.store = InMemoryTokenCacheStore()
        self.authenticator = FakeAuthenticator()
        self.service = self._service()

    def _service(self, mode=SignInMode.USE_ANY_CACHED_ACCOUNT):
        return AuthenticationService(
            self.configuration,
            self.authenticator,
            store=self.store,
            sign_in_mode=mode,
        )

    async def _seed(self, *records):
        async with self.store.session() as cache:
            for record in records:
                cache.upsert(record)


class TestServiceConstruction(ServiceTestCase):
    """生成直後の状態のテスト"""

    def test_initial_state(self):
        self.assertIsNone(self.service.identity)
        self.assertIsNone(self.service.user_name)
        self.assertIsNone(self.service.user_email)
        self.assertIsNone(self.service.user_account_id)
        self.assertIsNone(self.service.get_access_token())
        self.assertEqual(self.service.scopes, ["User.Read"])
        self.assertEqual(self.service.sign_in_mode, SignInMode.USE_ANY_CACHED_ACCOUNT)
        self.assertEqual(self.service.provider_name, "fake")

    def test_authority_from_template(self):
        self.assertEqual(
            self.service.configuration.authority_url,
            "https://login.microsoftonline.com/contoso.example/v2.0",
        )


class TestSilentLogin(ServiceTestCase):
    """silent_loginのテスト"""

    async def test_empty_cache_returns_false(self):
        """キャッシュが空ならFalseを返し、現在のアカウントは未設定のまま"""
        self.assertFalse(await self.service.silent_login())
        self.assertIsNone(self.service.identity)
        self.assertEqual(self.authenticator.silent_calls, [])

    async def test_corrupted_cache_returns_false(self):
        """破損したキャッシュは空として扱い、例外にしない"""
        self.store.blob = json.dumps({"version": 1, "accounts": [], "records": ["garbage"]})
        with self.assertLogs("tokenkeep.cache.storage", level="WARNING"):
            self.assertFalse(await self.service.silent_login())
        self.assertIsNone(self.service.identity)

    async def test_cached_token_sets_identity(self):
        account = make_account(1)
        await self._seed(make_record(account=account, access_token="cached"))

        self.assertTrue(await self.service.silent_login())

        self.assertEqual(self.service.user_account_id, account.home_account_id)
        self.assertEqual(self.service.user_name, account.username)
        self.assertEqual(self.service.user_email, account.username)
        self.assertEqual(self.service.get_access_token(), "cached")

    async def test_expired_token_is_refreshed(self):
        """期限切れでもリフレッシュできればTrueになり、より遅い期限のレコードが残る"""
        account = make_account(1)
        old = make_record(account=account, expires_in=-60, refresh_token="rt")
        await self._seed(old)
        self.authenticator.silent_results = [make_record(account=account, expires_in=3600, access_token="new")]

        self.assertTrue(await self.service.silent_login())

        async with self.store.session() as cache:
            records = cache.records_for(account)
        self.assertEqual(len(records), 1)
        self.assertGreater(records[0].expires_at, old.expires_at)
        self.assertEqual(self.authenticator.silent_calls[0]["refresh_token"], "rt")

    async def test_failure_keeps_identity(self):
        """失敗しても現在のアカウントは変わらない"""
        account = make_account(1)
        await self._seed(make_record(account=account))
        self.assertTrue(await self.service.silent_login())

        self.service.scopes = ["Mail.Send"]
        self.authenticator.silent_results = [InteractionRequiredError("consent")]

        self.assertFalse(await self.service.silent_login())
        self.assertEqual(self.service.identity, account)

    async def test_known_account_list_mode_never_silent(self):
        """既知アカウント一覧モードではヒントがないためサイレントは成功しない"""
        await self._seed(make_record(account=make_account(1)))
        self.service.sign_in_mode = SignInMode.USE_KNOWN_ACCOUNT_LIST
        self.assertFalse(await self.service.silent_login())

    async def test_system_account_mode_delegates_to_authenticator(self):
        account = make_account(3)
        self.service.sign_in_mode = SignInMode.USE_SYSTEM_ACCOUNT
        self.authenticator.silent_results = [make_record(account=account)]

        self.assertTrue(await self.service.silent_login())

        self.assertEqual(self.authenticator.silent_calls[0]["account"], SYSTEM_ACCOUNT)
        self.assertEqual(self.service.identity, account)

    async def test_fatal_error_is_raised(self):
        await self._seed(make_record(account=make_account(1), expires_in=-1))
        self.authenticator.silent_results = [AuthenticatorError("invalid_client")]
        with self.assertRaises(AuthenticationException):
            await self.service.silent_login()
        self.assertIsNone(self.service.identity)


class TestLogin(ServiceTestCase):
    """loginのテスト"""

    async def test_interactive_after_silent_failure(self):
        """サイレント失敗時は対話型サインインを1回だけ行う"""
        account = make_account(7)
        self.authenticator.interactive_results = [make_record(account=account)]

        await self.service.login()

        self.assertEqual(len(self.authenticator.interactive_calls), 1)
        self.assertEqual(self.service.user_account_id, account.home_account_id)

    async def test_round_trip_uses_cache(self):
        """対話型で取得したトークンは次回サイレントで使われる"""
        account = make_account(7)
        self.authenticator.interactive_results = [make_record(account=account)]
        await self.service.login()

        fresh = self._service()
        self.assertTrue(await fresh.silent_login())
        self.assertEqual(fresh.identity, account)
        self.assertEqual(len(self.authenticator.interactive_calls), 1)
        self.assertEqual(self.authenticator.silent_calls, [])

    async def test_silent_success_skips_interactive(self):
        await self._seed(make_record(account=make_account(1)))
        await self.service.login()
        self.assertEqual(self.authenticator.interactive_calls, [])

    async def test_interactive_uses_candidate_hint(self):
        """サイレントが失敗した候補アカウントをヒントとして渡す"""
        account = make_account(1)
        await self._seed(make_record(account=account, expires_in=-1, refresh_token=None))
        self.authenticator.interactive_results = [make_record(account=account)]

        await self.service.login()

        self.assertEqual(self.authenticator.interactive_calls[0]["account_hint"], account)

    async def test_user_cancel(self):
        """キャンセル時は例外なしで戻り、現在のアカウントは未設定のまま"""
        self.authenticator.interactive_results = [UserCancelledError("closed")]

        await self.service.login()

        self.assertIsNone(self.service.identity)
        self.assertIsNone(self.service.get_access_token())

    async def test_user_cancel_keeps_previous_identity(self):
        account = make_account(1)
        await self._seed(make_record(account=account))
        await self.service.login()

        self.service.scopes = ["Mail.Send"]
        self.authenticator.interactive_results = [UserCancelledError("closed")]
        await self.service.login()

        self.assertEqual(self.service.identity, account)

    async def test_interactive_error_is_fatal(self):
        self.authenticator.interactive_results = [AuthenticatorError("invalid_request")]
        with self.assertRaises(AuthenticationException):
            await self.service.login()


class TestLogout(ServiceTestCase):
    """logoutのテスト"""

    async def test_removes_all_accounts(self):
        """キャッシュ済みのすべてのアカウントを削除する"""
        await self._seed(*(make_record(account=make_account(i)) for i in range(3)))
        self.authenticator.provider_accounts = [make_account(9)]
        await self.service.silent_login()

        await self.service.logout()

        self.assertEqual(await self.service.registry.list_accounts(), [])
        self.assertIsNone(self.service.identity)
        self.assertIsNone(self.service.get_access_token())
        self.assertEqual(len(self.authenticator.removed_accounts), 4)
        self.assertIsNone(self.store.blob)

    async def test_logout_is_idempotent(self):
        await self.service.logout()
        await self.service.logout()
        self.assertEqual(await self.service.registry.list_accounts(), [])

    async def test_reappearing_account_raises(self):
        """削除したアカウントが再び現れた場合は無限ループせずに例外を送出する"""
        self.authenticator.sticky_accounts = [make_account(4)]
        with patch.object(self.store, "clear") as clear:
            with self.assertRaises(CacheException) as ctx:
                await self.service.logout()
        self.assertEqual(ctx.exception.error.code, "CACHE_002")
        clear.assert_not_called()


if __name__ == "__main__":
    unittest.main()
