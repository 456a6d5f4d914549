"""Authenticatorの公開API。"""

from __future__ import annotations

from typing import Any

from tokenkeep.auth.base import (
    Authenticator,
    AuthenticatorError,
    ClientHandle,
    InteractionRequiredError,
    UserCancelledError,
)
from tokenkeep.auth.msal_authenticator import MsalAuthenticator
from tokenkeep.errors import ConfigurationException, ErrorCode, create_config_error

__all__ = [
    "Authenticator",
    "AuthenticatorError",
    "ClientHandle",
    "InteractionRequiredError",
    "MsalAuthenticator",
    "UserCancelledError",
    "get_authenticator",
]


def get_authenticator(kind: str, **options: Any) -> Authenticator:
    """Authenticatorを生成する。

    Args:
        kind: Authenticator種別。
        **options: Authenticatorのコンストラクタ引数。

    Returns:
        Authenticatorのインスタンス。

    Raises:
        ConfigurationException: 未対応の種別が指定された場合。
    """

    normalized = kind.lower()
    if normalized in {"msal", "entra", "aad"}:
        return MsalAuthenticator(**options)
    raise ConfigurationException(
        create_config_error(
            f"未対応のAuthenticatorです: {kind}",
            details={"kind": kind},
            code=ErrorCode.AUTH_UNSUPPORTED,
        )
    )
