"""サインイン済みアカウントの管理と候補選択。"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict

from tokenkeep.auth.base import Authenticator, ClientHandle
from tokenkeep.cache.storage import TokenCacheStore
from tokenkeep.models import SYSTEM_ACCOUNT, Account, SignInMode

logger = logging.getLogger(__name__)


class AccountRegistry:
    """キャッシュ済みアカウントを列挙し、サイレント試行の候補を選ぶ。"""

    def __init__(self, store: TokenCacheStore, authenticator: Authenticator, client: ClientHandle) -> None:
        self._store = store
        self._authenticator = authenticator
        self._client = client
        self._selectors: Dict[SignInMode, Callable[[], Awaitable[Account | None]]] = {
            SignInMode.USE_SYSTEM_ACCOUNT: self._select_system_account,
            SignInMode.USE_KNOWN_ACCOUNT_LIST: self._select_no_hint,
            SignInMode.USE_ANY_CACHED_ACCOUNT: self._select_first_cached,
        }

    async def select_candidate(self, mode: SignInMode) -> Account | None:
        """サインインモードに従って候補アカウントを1つ選ぶ。

        Args:
            mode: サインインモード。

        Returns:
            候補アカウント。ヒントなしの場合はNone。
        """

        try:
            selector = self._selectors[mode]
        except KeyError:
            raise ValueError(f"未対応のサインインモードです: {mode}") from None
        return await selector()

    async def list_accounts(self) -> list[Account]:
        """キャッシュとプロバイダが把握するアカウントを重複なしで返す。

        キャッシュの追加順、続いてプロバイダの列挙順。
        """

        async with self._store.session() as cache:
            accounts = cache.accounts()

        known = {account.home_account_id for account in accounts}
        for account in await self._authenticator.list_cached_accounts(self._client):
            if account.home_account_id not in known:
                known.add(account.home_account_id)
                accounts.append(account)
        return accounts

    async def remove_account(self, account: Account) -> None:
        """アカウントと関連トークンを削除する。"""

        async with self._store.session() as cache:
            removed = cache.remove_account(account)
        await self._authenticator.remove_account(self._client, account)
        logger.debug("account removed: cache=%s", removed)

    async def _select_system_account(self) -> Account | None:
        # 識別はAuthenticator側に解決させる
        return SYSTEM_ACCOUNT

    async def _select_no_hint(self) -> Account | None:
        # ヒントを渡さずAuthenticatorにアカウント選択画面を出させる
        return None

    async def _select_first_cached(self) -> Account | None:
        # 並び順は実装依存。先頭のアカウントを採用する
        accounts = await self.list_accounts()
        return accounts[0] if accounts else None
