"""
共通データモデル

アカウント・トークンレコード・サインインモードなど、
tokenkeep全体で使用されるデータ構造を定義
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional


class SignInMode(Enum):
    """サイレントサインインで候補アカウントを選ぶ方針"""
    USE_SYSTEM_ACCOUNT = "system_account"
    USE_KNOWN_ACCOUNT_LIST = "known_account_list"
    USE_ANY_CACHED_ACCOUNT = "any_cached_account"


class Prompt(Enum):
    """対話型サインインのプロンプト方針"""
    SELECT_ACCOUNT = "select_account"
    LOGIN = "login"
    CONSENT = "consent"
    NONE = "none"


class OutcomeKind(Enum):
    """サインイン試行の結果種別"""
    SUCCESS = "success"
    INTERACTION_REQUIRED = "interaction_required"
    USER_CANCELLED = "user_cancelled"


@dataclass(frozen=True)
class Account:
    """認証プロバイダが発行したアカウント識別情報

    Attributes:
        home_account_id: テナントをまたいで安定した一意識別子
        username: サインイン名（通常はメールアドレス）
        tenant_id: 発行元テナント
    """
    home_account_id: str
    username: Optional[str] = None
    tenant_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "home_account_id": self.home_account_id,
            "username": self.username,
            "tenant_id": self.tenant_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Account":
        if not isinstance(data, dict):
            raise TypeError(f"account entry must be an object: {data!r}")
        return cls(
            home_account_id=str(data["home_account_id"]),
            username=data.get("username"),
            tenant_id=data.get("tenant_id"),
        )


# OSのサインイン済みアカウントを表す番兵
SYSTEM_ACCOUNT = Account(home_account_id="__system__")


def normalize_scopes(scopes: Iterable[str]) -> FrozenSet[str]:
    """スコープ集合を大文字小文字・空白を無視して正規化する"""
    return frozenset(s.strip().lower() for s in scopes if s and s.strip())


@dataclass(frozen=True)
class TokenRecord:
    """アクセストークンとリフレッシュ資格情報の組

    リフレッシュ時はインスタンスを置き換える（その場で変更しない）。

    Attributes:
        access_token: アクセストークン
        expires_at: 有効期限（エポック秒）。Noneは期限不明
        account: トークンに紐づくアカウント
        scopes: 付与されたスコープ
        refresh_token: リフレッシュトークン
        token_type: トークン種別
    """
    access_token: str
    expires_at: Optional[float]
    account: Account
    scopes: FrozenSet[str] = field(default_factory=frozenset)
    refresh_token: Optional[str] = None
    token_type: Optional[str] = "Bearer"

    @property
    def key(self) -> tuple:
        return (self.account.home_account_id, self.scopes)

    def is_expired(self, skew_seconds: float = 0.0, now: Optional[float] = None) -> bool:
        """期限切れかどうかを判定する

        期限が不明なトークンは期限切れとして扱い、リフレッシュを促す。
        """
        if self.expires_at is None:
            return True
        current = time.time() if now is None else now
        return current >= self.expires_at - skew_seconds

    def covers(self, scopes: FrozenSet[str]) -> bool:
        return scopes <= self.scopes

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "expires_at": self.expires_at,
            "account": self.account.to_dict(),
            "scopes": sorted(self.scopes),
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRecord":
        if not isinstance(data, dict):
            raise TypeError(f"token record must be an object: {data!r}")
        expires_at = data.get("expires_at")
        return cls(
            access_token=str(data["access_token"]),
            expires_at=float(expires_at) if isinstance(expires_at, (int, float)) else None,
            account=Account.from_dict(data["account"]),
            scopes=normalize_scopes(data.get("scopes") or []),
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type"),
        )


@dataclass(frozen=True)
class AuthOutcome:
    """サイレント/対話型サインインの結果

    INTERACTION_REQUIRED と USER_CANCELLED は想定内の結果であり、
    例外ではなくこの値で表現する。
    """
    kind: OutcomeKind
    record: Optional[TokenRecord] = None
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @classmethod
    def success(cls, record: TokenRecord) -> "AuthOutcome":
        return cls(kind=OutcomeKind.SUCCESS, record=record)

    @classmethod
    def interaction_required(cls, reason: Optional[str] = None) -> "AuthOutcome":
        return cls(kind=OutcomeKind.INTERACTION_REQUIRED, reason=reason)

    @classmethod
    def user_cancelled(cls, reason: Optional[str] = None) -> "AuthOutcome":
        return cls(kind=OutcomeKind.USER_CANCELLED, reason=reason)
