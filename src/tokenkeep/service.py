"""サインイン/サインアウトの公開API。"""

from __future__ import annotations

import logging
from typing import Optional

from tokenkeep.auth import Authenticator, get_authenticator
from tokenkeep.cache.storage import TokenCacheStore
from tokenkeep.config.settings import ClientConfiguration, IdentitySettings
from tokenkeep.core.interactive import InteractiveSignInOrchestrator
from tokenkeep.core.registry import AccountRegistry
from tokenkeep.core.silent import DEFAULT_EXPIRY_SKEW_SECONDS, SilentRefreshEngine
from tokenkeep.errors import CacheException, ErrorCode, create_cache_error
from tokenkeep.models import Account, AuthOutcome, OutcomeKind, SignInMode, TokenRecord

logger = logging.getLogger(__name__)


class AuthenticationService:
    """サイレント→対話型の順でサインインし、現在のアカウントを保持する。

    ``scopes`` と ``sign_in_mode`` は呼び出しごとに変更してよい。
    サービス自身はロックを持たず、キャッシュの整合性は TokenCacheStore が保証する。
    """

    def __init__(
        self,
        configuration: ClientConfiguration,
        authenticator: Authenticator,
        store: TokenCacheStore | None = None,
        sign_in_mode: SignInMode = SignInMode.USE_ANY_CACHED_ACCOUNT,
        expiry_skew_seconds: float = DEFAULT_EXPIRY_SKEW_SECONDS,
    ) -> None:
        """AuthenticationServiceを初期化する。

        Args:
            configuration: クライアント設定。
            authenticator: トークン取得を委譲するAuthenticator。
            store: キャッシュの保存先。省略時はクライアントIDごとのkeyringエントリ。
            sign_in_mode: 候補アカウントの選択方針。
            expiry_skew_seconds: 期限切れ判定の余裕時間。
        """

        self._configuration = configuration
        self._authenticator = authenticator
        self._store = store or TokenCacheStore(entry_name=configuration.client_id)
        self._client = authenticator.build_client(
            configuration.client_id,
            configuration.authority_url,
            configuration.redirect_uri,
        )
        self._registry = AccountRegistry(self._store, authenticator, self._client)
        self._silent = SilentRefreshEngine(self._store, authenticator, self._client, expiry_skew_seconds)
        self._interactive = InteractiveSignInOrchestrator(self._store, authenticator, self._client)

        self.scopes: list[str] = list(configuration.requested_scopes)
        self.sign_in_mode = sign_in_mode
        self._identity: Optional[Account] = None
        self._last_record: Optional[TokenRecord] = None

    @property
    def provider_name(self) -> str:
        return self._authenticator.provider_name

    @property
    def configuration(self) -> ClientConfiguration:
        return self._configuration

    @property
    def registry(self) -> AccountRegistry:
        return self._registry

    @property
    def identity(self) -> Optional[Account]:
        return self._identity

    @property
    def user_name(self) -> Optional[str]:
        return self._identity.username if self._identity else None

    @property
    def user_email(self) -> Optional[str]:
        # サインイン名はメールアドレス形式
        return self._identity.username if self._identity else None

    @property
    def user_account_id(self) -> Optional[str]:
        return self._identity.home_account_id if self._identity else None

    def get_access_token(self) -> Optional[str]:
        """直近に成功したサインインのアクセストークンを返す。"""

        return self._last_record.access_token if self._last_record else None

    async def silent_login(self) -> bool:
        """サイレントサインインを試みる。

        Returns:
            成功した場合True。対話型サインインが必要な場合False。
        """

        candidate = await self._registry.select_candidate(self.sign_in_mode)
        outcome = await self._silent.attempt(candidate, self._current_scopes())
        return self._apply(outcome)

    async def login(self) -> None:
        """サインインする。サイレントで失敗した場合のみ対話型サインインを行う。

        ユーザーがキャンセルした場合は現在のアカウントを変更せずに戻る。

        Raises:
            AuthenticationException: キャンセル以外の理由で認証に失敗した場合。
        """

        scopes = self._current_scopes()
        candidate = await self._registry.select_candidate(self.sign_in_mode)
        if self._apply(await self._silent.attempt(candidate, scopes)):
            return

        outcome = await self._interactive.run(candidate, scopes)
        if outcome.kind is OutcomeKind.USER_CANCELLED:
            return
        self._apply(outcome)

    async def logout(self) -> None:
        """キャッシュ済みのすべてのアカウントを削除する。

        削除のたびに一覧を取り直す（削除で列挙結果が変わり得るため）。
        すべて削除できたら保存済みのキャッシュエントリも消す。

        Raises:
            CacheException: 削除したアカウントが再び現れた場合。
        """

        removed: set[str] = set()
        accounts = await self._registry.list_accounts()
        while accounts:
            account = accounts[0]
            if account.home_account_id in removed:
                raise CacheException(
                    create_cache_error(
                        ErrorCode.CACHE_WRITE_FAILED,
                        "アカウントを削除できませんでした。",
                        details={"home_account_id": account.home_account_id},
                    )
                )
            await self._registry.remove_account(account)
            removed.add(account.home_account_id)
            accounts = await self._registry.list_accounts()

        await self._store.discard()
        self._identity = None
        self._last_record = None
        logger.info("signed out: removed_accounts=%d", len(removed))

    def _current_scopes(self) -> list[str]:
        return list(self.scopes or self._configuration.requested_scopes)

    def _apply(self, outcome: AuthOutcome) -> bool:
        if not outcome.succeeded or outcome.record is None:
            return False
        self._last_record = outcome.record
        self._identity = outcome.record.account
        logger.info("signed in: account_id=%s", self._identity.home_account_id)
        return True


def create_service(settings: IdentitySettings, authenticator: Authenticator | None = None) -> AuthenticationService:
    """設定からサービス一式を構築する。

    Args:
        settings: 読み込み済みの設定。
        authenticator: 使用するAuthenticator。省略時は設定の種別から生成する。

    Raises:
        ConfigurationException: 設定が不正な場合。
    """

    configuration = settings.to_client_configuration()
    if authenticator is None:
        authenticator = get_authenticator(
            settings.authenticator,
            timeout_seconds=settings.http_timeout_seconds,
            interactive_timeout_seconds=settings.interactive_timeout_seconds,
        )
    store = TokenCacheStore(
        entry_name=configuration.client_id,
        keyring_service=settings.keyring_service,
        fallback_path=settings.cache_path,
    )
    return AuthenticationService(
        configuration,
        authenticator,
        store=store,
        sign_in_mode=settings.sign_in_mode,
        expiry_skew_seconds=settings.expiry_skew_seconds,
    )

