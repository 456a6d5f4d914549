"""トークンキャッシュblobの安全な永続化を提供する。"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import json
import logging
import os
from pathlib import Path
from typing import AsyncIterator, Callable, TypeVar
import warnings

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from tokenkeep.cache.token_cache import TokenCache
from tokenkeep.errors import CacheException

logger = logging.getLogger(__name__)

DEFAULT_KEYRING_SERVICE = "tokenkeep"

_T = TypeVar("_T")


class _KeyringBackend:
    """OSのkeyringにblobを保存する。"""

    def __init__(self, service: str) -> None:
        self.service = service

    def get(self, name: str) -> str | None:
        return keyring.get_password(self.service, name)

    def put(self, name: str, blob: str) -> None:
        keyring.set_password(self.service, name, blob)

    def delete(self, name: str) -> None:
        try:
            keyring.delete_password(self.service, name)
        except PasswordDeleteError:
            pass


class _FileBackend:
    """エントリ名をキーとするJSONファイルにblobを保存する。

    ファイルは所有者のみ読み書き可能（0600）、親ディレクトリは0700で作成する。
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def get(self, name: str) -> str | None:
        return self._entries().get(name)

    def put(self, name: str, blob: str) -> None:
        entries = self._entries()
        entries[name] = blob
        self._dump(entries)

    def delete(self, name: str) -> None:
        entries = self._entries()
        if entries.pop(name, None) is not None:
            self._dump(entries)

    def _entries(self) -> dict[str, str]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            warnings.warn(
                f"キャッシュ保存ファイル {self.path} の形式が不正です。空として扱います。",
                RuntimeWarning,
                stacklevel=3,
            )
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if isinstance(value, str)}

    def _dump(self, entries: dict[str, str]) -> None:
        self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            json.dump(entries, file, ensure_ascii=False, indent=2)
        # 既存ファイルはos.openのmodeが効かない
        os.chmod(self.path, 0o600)


class TokenCacheStore:
    """シリアライズ済みトークンキャッシュの保存と取得を管理する。

    OSのkeyringを優先し、利用できない場合はローカルファイルに切り替える。
    ``session()`` は読み込みから保存までを排他的に行うため、
    同じキャッシュを扱うコンポーネントは1つのインスタンスを共有すること。
    """

    def __init__(
        self,
        entry_name: str,
        keyring_service: str = DEFAULT_KEYRING_SERVICE,
        fallback_path: Path | None = None,
    ) -> None:
        """TokenCacheStoreを初期化する。

        Args:
            entry_name: 保存エントリ名（通常はクライアントID）。
            keyring_service: keyringに保存する際のサービス名。
            fallback_path: keyringが使えない場合の保存先。
        """

        self._entry_name = entry_name
        self._fallback = _FileBackend(fallback_path or Path.home() / ".tokenkeep" / "token_cache.json")
        self._backend: _KeyringBackend | _FileBackend = _KeyringBackend(keyring_service)
        self._lock = asyncio.Lock()

    @property
    def entry_name(self) -> str:
        return self._entry_name

    def load(self) -> str | None:
        """保存済みblobを取得する。

        Returns:
            blob。存在しない場合はNone。
        """

        return self._dispatch(lambda backend: backend.get(self._entry_name))

    def save(self, blob: str) -> None:
        """blobを保存する。

        Args:
            blob: シリアライズ済みキャッシュ。
        """

        self._dispatch(lambda backend: backend.put(self._entry_name, blob))

    def clear(self) -> None:
        """保存済みblobを削除する。存在しない場合は何もしない。"""

        self._dispatch(lambda backend: backend.delete(self._entry_name))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[TokenCache]:
        """キャッシュを排他的に読み込み、変更があれば保存する。

        ブロック内で例外が発生した場合は保存しない。
        """

        async with self._lock:
            blob = self.load()
            try:
                cache = TokenCache.deserialize(blob)
            except CacheException as exc:
                logger.warning("トークンキャッシュを読み込めないため空として扱います: %s", exc)
                cache = TokenCache()

            yield cache

            if cache.has_state_changed:
                self.save(cache.serialize())
                cache.has_state_changed = False

    async def discard(self) -> None:
        """実行中のセッションを待ってから保存済みblobを削除する。"""

        async with self._lock:
            self.clear()

    def _dispatch(self, operation: Callable[[_KeyringBackend | _FileBackend], _T]) -> _T:
        if self._backend is not self._fallback:
            try:
                return operation(self._backend)
            except KeyringError as exc:
                warnings.warn(
                    "keyringが利用できないため、ローカルファイルに保存します。",
                    RuntimeWarning,
                    stacklevel=3,
                )
                logger.debug("keyring error: %s", exc)
                self._backend = self._fallback
        return operation(self._fallback)
