"""トークンキャッシュのメモリ上の表現とシリアライズ。"""

from __future__ import annotations

import json
import logging
from typing import Any, FrozenSet

from tokenkeep.errors import CacheException, ErrorCode, create_cache_error
from tokenkeep.models import Account, TokenRecord

logger = logging.getLogger(__name__)

CACHE_FORMAT_VERSION = 1


class TokenCache:
    """アカウントとトークンレコードを保持する。

    (home_account_id, scopes) ごとに有効なレコードは高々1つ。
    アカウントは追加順に列挙される。
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._records: dict[tuple[str, FrozenSet[str]], TokenRecord] = {}
        self.has_state_changed = False

    def accounts(self) -> list[Account]:
        """キャッシュ済みアカウントを追加順に返す。"""

        return list(self._accounts.values())

    def records_for(self, account: Account) -> list[TokenRecord]:
        return [
            record
            for (home_id, _), record in self._records.items()
            if home_id == account.home_account_id
        ]

    def find(self, account: Account, scopes: FrozenSet[str]) -> TokenRecord | None:
        """スコープを満たすレコードを探す。

        完全一致するキーを優先し、なければ要求スコープを包含するレコードのうち
        期限が最も遅いものを返す。
        """

        exact = self._records.get((account.home_account_id, scopes))
        if exact is not None:
            return exact

        candidates = [record for record in self.records_for(account) if record.covers(scopes)]
        if not candidates:
            return None
        return max(candidates, key=lambda record: record.expires_at or 0.0)

    def find_refresh_token(self, account: Account, scopes: FrozenSet[str]) -> str | None:
        """アカウントに紐づくリフレッシュトークンを返す。"""

        exact = self._records.get((account.home_account_id, scopes))
        if exact is not None and exact.refresh_token:
            return exact.refresh_token
        for record in self.records_for(account):
            if record.refresh_token:
                return record.refresh_token
        return None

    def upsert(self, record: TokenRecord, supersedes: TokenRecord | None = None) -> None:
        """レコードを保存する。同じキーの既存レコードは置き換える。

        Args:
            record: 新しいレコード。
            supersedes: 置き換え元のレコード。キーが異なっていても削除する。
        """

        if supersedes is not None and supersedes.key != record.key:
            self._records.pop(supersedes.key, None)

        home_id = record.account.home_account_id
        self._accounts[home_id] = record.account
        self._records[record.key] = record
        self.has_state_changed = True

    def remove_account(self, account: Account) -> bool:
        """アカウントと関連するレコードをすべて削除する。

        Returns:
            bool: 何か削除した場合True。
        """

        home_id = account.home_account_id
        keys = [key for key in self._records if key[0] == home_id]
        for key in keys:
            del self._records[key]
        removed = self._accounts.pop(home_id, None) is not None or bool(keys)
        if removed:
            self.has_state_changed = True
        return removed

    def serialize(self) -> str:
        payload = {
            "version": CACHE_FORMAT_VERSION,
            "accounts": [account.to_dict() for account in self._accounts.values()],
            "records": [record.to_dict() for record in self._records.values()],
        }
        return json.dumps(payload, ensure_ascii=False)

    @classmethod
    def deserialize(cls, blob: str | None) -> TokenCache:
        """保存済みのblobからキャッシュを復元する。

        Raises:
            CacheException: blobの形式が不正な場合。
        """

        cache = cls()
        if not blob:
            return cache

        try:
            payload: Any = json.loads(blob)
        except json.JSONDecodeError as exc:
            raise CacheException(
                create_cache_error(ErrorCode.CACHE_CORRUPTED, "トークンキャッシュの形式が不正です。")
            ) from exc

        if not isinstance(payload, dict):
            raise CacheException(
                create_cache_error(ErrorCode.CACHE_CORRUPTED, "トークンキャッシュの形式が不正です。")
            )

        try:
            for item in payload.get("accounts", []):
                account = Account.from_dict(item)
                cache._accounts[account.home_account_id] = account
            for item in payload.get("records", []):
                record = TokenRecord.from_dict(item)
                cache._accounts.setdefault(record.account.home_account_id, record.account)
                cache._records[record.key] = record
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise CacheException(
                create_cache_error(
                    ErrorCode.CACHE_CORRUPTED,
                    "トークンキャッシュのレコードが不正です。",
                    details={"reason": str(exc)},
                )
            ) from exc

        return cache
