"""対話型サインインへのフォールバック。"""

from __future__ import annotations

import logging
from typing import Iterable

from tokenkeep.auth.base import Authenticator, AuthenticatorError, ClientHandle, UserCancelledError
from tokenkeep.cache.storage import TokenCacheStore
from tokenkeep.core.silent import ensure_scopes
from tokenkeep.models import SYSTEM_ACCOUNT, Account, AuthOutcome, Prompt, normalize_scopes

logger = logging.getLogger(__name__)


class InteractiveSignInOrchestrator:
    """Authenticatorに対話型サインインを依頼し、結果をキャッシュに保存する。"""

    def __init__(self, store: TokenCacheStore, authenticator: Authenticator, client: ClientHandle) -> None:
        self._store = store
        self._authenticator = authenticator
        self._client = client

    async def run(
        self,
        account_hint: Account | None,
        scopes: Iterable[str],
        prompt: Prompt = Prompt.SELECT_ACCOUNT,
    ) -> AuthOutcome:
        """対話型サインインを実行する。

        UIの待機中に他の呼び出しを止めないよう、ストアのロックは
        結果の保存時にだけ取得する。

        Args:
            account_hint: アカウントのヒント。Noneならユーザーに選ばせる。
            scopes: 要求スコープ。
            prompt: プロンプト方針。

        Returns:
            AuthOutcome: SUCCESS または USER_CANCELLED。

        Raises:
            AuthenticationException: キャンセル以外のプロバイダエラー。
        """

        requested = normalize_scopes(scopes)
        hint = None if account_hint == SYSTEM_ACCOUNT else account_hint

        try:
            record = await self._authenticator.acquire_token_interactive(self._client, requested, hint, prompt)
        except UserCancelledError as exc:
            logger.info("interactive sign-in cancelled by user")
            return AuthOutcome.user_cancelled(str(exc))
        except AuthenticatorError as exc:
            raise exc.to_exception("対話型認証") from exc

        record = ensure_scopes(record, requested)
        async with self._store.session() as cache:
            cache.upsert(record)

        return AuthOutcome.success(record)
