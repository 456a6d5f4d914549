"""
エラー定義

tokenkeepで使用されるエラーコードと例外クラス
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """エラーコード

    カテゴリ別にエラーコードを定義:
    - CONFIG_xxx: 設定エラー
    - AUTH_xxx: 認証プロバイダのエラー
    - CACHE_xxx: トークンキャッシュのエラー
    """
    # 設定エラー
    CONFIG_MISSING_VALUE = "CONFIG_001"
    CONFIG_INVALID_VALUE = "CONFIG_002"

    # 認証エラー
    AUTH_PROVIDER_ERROR = "AUTH_001"
    AUTH_NETWORK_ERROR = "AUTH_002"
    AUTH_UNSUPPORTED = "AUTH_003"

    # キャッシュエラー
    CACHE_CORRUPTED = "CACHE_001"
    CACHE_WRITE_FAILED = "CACHE_002"


@dataclass
class IdentityError:
    """認証エラー情報

    Attributes:
        code: エラーコード文字列
        message: エラーメッセージ
        details: 追加のエラー詳細情報
        recoverable: 復旧可能かどうか
    """
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    recoverable: bool = False
    log_level: int = logging.ERROR


class TokenKeepException(Exception):
    """tokenkeep例外クラス

    IdentityErrorをラップする例外クラス
    """

    def __init__(self, error: IdentityError):
        """TokenKeepExceptionを初期化

        Args:
            error: IdentityErrorインスタンス
        """
        self.error = error
        self.log_level = error.log_level
        super().__init__(f"[{error.code}] {error.message}")


class ConfigurationException(TokenKeepException):
    """設定値の検証エラー（client_id/tenant の欠落など）"""


class AuthenticationException(TokenKeepException):
    """認証プロバイダから返された致命的なエラー"""


class CacheException(TokenKeepException):
    """トークンキャッシュの読み書きに関するエラー"""


ERROR_CODE_LOG_LEVEL: Dict[ErrorCode, int] = {
    ErrorCode.AUTH_NETWORK_ERROR: logging.WARNING,
    ErrorCode.CACHE_CORRUPTED: logging.WARNING,
}

# ネットワーク断は再試行で回復し得る
RECOVERABLE_CODES = frozenset({ErrorCode.AUTH_NETWORK_ERROR})


def create_config_error(
    message: str,
    details: Optional[Dict[str, Any]] = None,
    code: ErrorCode = ErrorCode.CONFIG_MISSING_VALUE,
) -> IdentityError:
    """設定エラーを作成

    Args:
        message: エラーメッセージ
        details: 追加詳細
        code: エラーコード（既定は CONFIG_MISSING_VALUE）

    Returns:
        IdentityError: 設定エラー
    """
    return IdentityError(
        code=code.value,
        message=message,
        details=details,
        recoverable=False,
        log_level=logging.ERROR,
    )


def create_auth_error(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    log_level: Optional[int] = None,
) -> IdentityError:
    """認証エラーを作成

    Args:
        code: エラーコード
        message: エラーメッセージ
        details: 追加詳細（プロバイダのエラーコードなど）

    Returns:
        IdentityError: 認証エラー
    """
    return IdentityError(
        code=code.value,
        message=message,
        details=details,
        recoverable=code in RECOVERABLE_CODES,
        log_level=log_level or ERROR_CODE_LOG_LEVEL.get(code, logging.ERROR),
    )


def create_cache_error(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> IdentityError:
    """キャッシュエラーを作成

    Args:
        code: エラーコード
        message: エラーメッセージ
        details: 追加詳細

    Returns:
        IdentityError: キャッシュエラー
    """
    return IdentityError(
        code=code.value,
        message=message,
        details=details,
        recoverable=False,
        log_level=ERROR_CODE_LOG_LEVEL.get(code, logging.ERROR),
    )
