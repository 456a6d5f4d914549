"""サインインの中核コンポーネント"""

from tokenkeep.core.interactive import InteractiveSignInOrchestrator
from tokenkeep.core.registry import AccountRegistry
from tokenkeep.core.silent import DEFAULT_EXPIRY_SKEW_SECONDS, SilentRefreshEngine

__all__ = [
    "AccountRegistry",
    "DEFAULT_EXPIRY_SKEW_SECONDS",
    "InteractiveSignInOrchestrator",
    "SilentRefreshEngine",
]
