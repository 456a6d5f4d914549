"""キャッシュ済み資格情報によるサイレントなトークン取得。"""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterable

from tokenkeep.auth.base import Authenticator, AuthenticatorError, ClientHandle, InteractionRequiredError
from tokenkeep.cache.storage import TokenCacheStore
from tokenkeep.models import SYSTEM_ACCOUNT, Account, AuthOutcome, TokenRecord, normalize_scopes

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_SKEW_SECONDS = 300.0


class SilentRefreshEngine:
    """UIなしで有効なアクセストークンを用意する。

    キャッシュに有効なレコードがあればそれを返し、期限切れなら
    リフレッシュトークンを使ってAuthenticatorに再発行を依頼する。
    読み込みから保存までを1つのストアセッション内で行うため、
    同時に呼ばれてもリフレッシュは直列化される。
    """

    def __init__(
        self,
        store: TokenCacheStore,
        authenticator: Authenticator,
        client: ClientHandle,
        expiry_skew_seconds: float = DEFAULT_EXPIRY_SKEW_SECONDS,
    ) -> None:
        self._store = store
        self._authenticator = authenticator
        self._client = client
        self._expiry_skew_seconds = expiry_skew_seconds

    async def attempt(self, account: Account | None, scopes: Iterable[str]) -> AuthOutcome:
        """サイレント取得を試みる。

        Args:
            account: 候補アカウント。Noneはヒントなし。
            scopes: 要求スコープ。

        Returns:
            AuthOutcome: SUCCESS または INTERACTION_REQUIRED。

        Raises:
            AuthenticationException: プロバイダが回復不能なエラーを返した場合。
        """

        if account is None:
            return AuthOutcome.interaction_required("候補アカウントがありません。")

        requested = normalize_scopes(scopes)
        use_cache = account != SYSTEM_ACCOUNT

        async with self._store.session() as cache:
            cached = cache.find(account, requested) if use_cache else None
            if cached is not None and not cached.is_expired(self._expiry_skew_seconds):
                logger.debug("token cache hit: scopes=%s", sorted(requested))
                return AuthOutcome.success(cached)

            refresh_token = cache.find_refresh_token(account, requested) if use_cache else None
            try:
                record = await self._authenticator.acquire_token_silent(
                    self._client, requested, account, refresh_token
                )
            except InteractionRequiredError as exc:
                logger.debug("silent token acquisition requires interaction: %s", exc)
                return AuthOutcome.interaction_required(str(exc))
            except AuthenticatorError as exc:
                raise exc.to_exception("サイレント認証") from exc

            record = ensure_scopes(record, requested)
            cache.upsert(record, supersedes=cached)

        return AuthOutcome.success(record)


def ensure_scopes(record: TokenRecord, requested: frozenset) -> TokenRecord:
    """レコードのスコープを正規化し、要求スコープを必ず含めて返す。"""

    normalized = normalize_scopes(record.scopes)
    if requested <= normalized and normalized == record.scopes:
        return record
    return dataclasses.replace(record, scopes=normalized | requested)
