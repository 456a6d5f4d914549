"""tokenkeep - 公開クライアント向けのサインインとトークンキャッシュ管理"""

__version__ = "0.1.0"

from tokenkeep.errors import (  # noqa: E402
    AuthenticationException,
    CacheException,
    ConfigurationException,
    ErrorCode,
    TokenKeepException,
)
from tokenkeep.models import Account, AuthOutcome, OutcomeKind, Prompt, SignInMode, TokenRecord  # noqa: E402
from tokenkeep.service import AuthenticationService, create_service  # noqa: E402

__all__ = [
    "Account",
    "AuthOutcome",
    "AuthenticationException",
    "AuthenticationService",
    "CacheException",
    "ConfigurationException",
    "ErrorCode",
    "OutcomeKind",
    "Prompt",
    "SignInMode",
    "TokenKeepException",
    "TokenRecord",
    "__version__",
    "create_service",
]
