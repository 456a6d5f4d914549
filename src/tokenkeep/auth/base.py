"""認証プロバイダ基盤。

トークン取得を委譲する Authenticator が実装すべきインターフェースと、
Authenticator が送出するシグナル例外を定義する。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, FrozenSet

from tokenkeep.errors import AuthenticationException, ErrorCode, create_auth_error
from tokenkeep.models import Account, Prompt, TokenRecord

NETWORK_ERROR = "network_error"


class InteractionRequiredError(Exception):
    """UIを伴う対話型サインインなしでは続行できないことを示す。"""


class UserCancelledError(Exception):
    """ユーザーが対話型サインインをキャンセルしたことを示す。"""


class AuthenticatorError(Exception):
    """ネットワーク障害・設定誤りなど回復不能なプロバイダエラー。"""

    def __init__(self, error_code: str, message: str | None = None) -> None:
        self.error_code = error_code
        super().__init__(message or error_code)

    def to_exception(self, operation: str) -> AuthenticationException:
        """呼び出し元へ送出する例外に変換する。プロバイダ固有の型は露出しない。"""

        code = ErrorCode.AUTH_NETWORK_ERROR if self.error_code == NETWORK_ERROR else ErrorCode.AUTH_PROVIDER_ERROR
        return AuthenticationException(
            create_auth_error(
                code,
                f"{operation}中に予期しないエラーが発生しました: {self.error_code}",
                details={"provider_error": self.error_code, "description": str(self)},
            )
        )


@dataclass(slots=True)
class ClientHandle:
    """Authenticatorが構築したクライアントへの参照。

    ``native`` にはプロバイダ固有のクライアントオブジェクトを保持する。
    """

    client_id: str
    authority_url: str
    redirect_uri: str | None = None
    native: Any = None
    extras: dict[str, str] = field(default_factory=dict)


class Authenticator(ABC):
    """トークン取得プロトコルを担う外部コラボレータの抽象基底クラス。

    キャッシュは持たず、与えられた資格情報からトークンを発行することだけを担う。
    """

    provider_name = "generic"

    def build_client(self, client_id: str, authority_url: str, redirect_uri: str | None) -> ClientHandle:
        """クライアントを構築する。"""

        return ClientHandle(client_id=client_id, authority_url=authority_url, redirect_uri=redirect_uri)

    async def list_cached_accounts(self, client: ClientHandle) -> list[Account]:
        """プロバイダ側が把握しているアカウントを返す。既定では空。"""

        return []

    @abstractmethod
    async def acquire_token_silent(
        self,
        client: ClientHandle,
        scopes: FrozenSet[str],
        account: Account,
        refresh_token: str | None,
    ) -> TokenRecord:
        """UIなしでトークンを取得する。

        Raises:
            InteractionRequiredError: 対話型サインインが必要な場合。
            AuthenticatorError: その他のプロバイダエラー。
        """

    @abstractmethod
    async def acquire_token_interactive(
        self,
        client: ClientHandle,
        scopes: FrozenSet[str],
        account_hint: Account | None,
        prompt: Prompt,
    ) -> TokenRecord:
        """ブラウザやOSダイアログを使ってトークンを取得する。

        Raises:
            UserCancelledError: ユーザーがキャンセルした場合。
            AuthenticatorError: その他のプロバイダエラー。
        """

    async def remove_account(self, client: ClientHandle, account: Account) -> None:
        """プロバイダ側のアカウント情報を破棄する。既定では何もしない。"""

        return None
