"""トークンキャッシュの公開API。"""

from tokenkeep.cache.storage import DEFAULT_KEYRING_SERVICE, TokenCacheStore
from tokenkeep.cache.token_cache import TokenCache

__all__ = [
    "DEFAULT_KEYRING_SERVICE",
    "TokenCache",
    "TokenCacheStore",
]
