"""設定管理 - 設定の読み込みと管理"""

from tokenkeep.config.settings import (
    DEFAULT_AUTHORITY_TEMPLATE,
    DEFAULT_SCOPES,
    ClientConfiguration,
    IdentitySettings,
    default_config_paths,
    load_settings,
)

__all__ = [
    "ClientConfiguration",
    "DEFAULT_AUTHORITY_TEMPLATE",
    "DEFAULT_SCOPES",
    "IdentitySettings",
    "default_config_paths",
    "load_settings",
]
