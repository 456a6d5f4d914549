"""Pydantic V2 ベースの設定モデル"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tokenkeep.errors import ConfigurationException, ErrorCode, create_config_error
from tokenkeep.models import SignInMode

logger = logging.getLogger(__name__)

DEFAULT_AUTHORITY_TEMPLATE = "https://login.microsoftonline.com/{tenant}/v2.0"
DEFAULT_SCOPES: Tuple[str, ...] = ("User.Read",)


class ClientConfiguration(BaseModel):
    """クライアント構築時の設定（生成後は変更不可）

    tenant には以下のいずれかを指定する:
    - 組織内アカウントのみ: テナントIDまたはドメイン（例: contoso.onmicrosoft.com）
    - 任意の組織アカウント: organizations
    - 組織アカウントと個人アカウント: common
    - 個人アカウントのみ: consumers
    """

    model_config = ConfigDict(frozen=True)

    client_id: str
    tenant: str
    authority_template: str = DEFAULT_AUTHORITY_TEMPLATE
    redirect_uri: Optional[str] = None
    requested_scopes: Tuple[str, ...] = DEFAULT_SCOPES

    @field_validator("client_id", "tenant")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        """空文字や空白のみの値を拒否する"""
        if not value or not value.strip():
            raise ValueError("空の値は指定できません")
        return value.strip()

    @field_validator("authority_template")
    @classmethod
    def validate_authority_template(cls, value: str) -> str:
        """authority テンプレートに {tenant} が含まれることを確認する"""
        if "{tenant}" not in value:
            raise ValueError("authority_template には {tenant} を含めてください")
        return value

    @property
    def authority_url(self) -> str:
        return self.authority_template.format(tenant=self.tenant)

    @classmethod
    def create(
        cls,
        client_id: Optional[str],
        tenant: Optional[str],
        authority_template: Optional[str] = None,
        scopes: Optional[Sequence[str]] = None,
        redirect_uri: Optional[str] = None,
    ) -> "ClientConfiguration":
        """値を検証して ClientConfiguration を生成する

        ネットワークアクセスの前に不正な設定を拒否する。

        Raises:
            ConfigurationException: client_id/tenant が未設定、またはその他の値が不正な場合
        """
        for name, value in (("client_id", client_id), ("tenant", tenant)):
            if value is None or not str(value).strip():
                raise ConfigurationException(
                    create_config_error(f"{name} が設定されていません。", details={"field": name})
                )

        values: Dict[str, Any] = {"client_id": client_id, "tenant": tenant}
        if authority_template:
            values["authority_template"] = authority_template
        if scopes is not None:
            values["requested_scopes"] = tuple(scopes)
        if redirect_uri:
            values["redirect_uri"] = redirect_uri

        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationException(
                create_config_error(
                    "クライアント設定が不正です。",
                    details={"errors": exc.errors(include_url=False)},
                    code=ErrorCode.CONFIG_INVALID_VALUE,
                )
            ) from exc


class IdentitySettings(BaseSettings):
    """tokenkeep の統合設定"""

    model_config = SettingsConfigDict(
        env_prefix="TOKENKEEP_",
        env_file=".env",
        extra="forbid",
    )

    # クライアント設定
    client_id: Optional[str] = None
    tenant: Optional[str] = None
    authority_template: str = DEFAULT_AUTHORITY_TEMPLATE
    redirect_uri: Optional[str] = None
    scopes: List[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))

    # サインイン設定
    sign_in_mode: SignInMode = SignInMode.USE_ANY_CACHED_ACCOUNT
    authenticator: str = "msal"
    expiry_skew_seconds: float = Field(default=300.0, ge=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    interactive_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    # キャッシュ設定
    keyring_service: str = "tokenkeep"
    cache_path: Optional[Path] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[Any, ...]:
        """設定ソースの優先順位をカスタマイズ（env > dotenv > init）"""
        return (
            env_settings,
            dotenv_settings,
            init_settings,
            file_secret_settings,
        )

    def to_client_configuration(self) -> ClientConfiguration:
        """クライアント設定を生成する"""
        return ClientConfiguration.create(
            client_id=self.client_id,
            tenant=self.tenant,
            authority_template=self.authority_template,
            scopes=self.scopes,
            redirect_uri=self.redirect_uri,
        )

    def dump_masked(self) -> dict:
        """機微情報をマスクした設定を返却する"""
        data = self.model_dump(mode="json")
        client_id = data.get("client_id")
        if client_id:
            data["client_id"] = f"{client_id[:8]}..." if len(client_id) > 12 else "***"
        return data


def default_config_paths() -> List[Path]:
    """デフォルトの設定ファイルパスを取得

    Returns:
        List[Path]: 検索する設定ファイルパスのリスト
    """
    home = Path.home()
    return [
        Path.cwd() / "tokenkeep.yaml",
        Path.cwd() / "tokenkeep.yml",
        home / ".tokenkeep.yaml",
        home / ".config" / "tokenkeep" / "config.yaml",
    ]


def _load_yaml(config_path: Optional[Path]) -> Dict[str, Any]:
    if config_path is None:
        for path in default_config_paths():
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError:
        logger.warning("設定ファイルを解析できないため無視します: %s", config_path)
        return {}

    if not isinstance(data, dict):
        return {}
    return data


def load_settings(config_path: Optional[Path] = None) -> IdentitySettings:
    """設定を読み込む

    優先順位: 環境変数 > .env > 設定ファイル > デフォルト

    Args:
        config_path: 設定ファイルのパス（省略時はデフォルトパスを検索）

    Returns:
        IdentitySettings: 読み込んだ設定

    Raises:
        ConfigurationException: 設定値が不正な場合
    """
    data = _load_yaml(config_path)
    try:
        return IdentitySettings(**data)
    except ValidationError as exc:
        raise ConfigurationException(
            create_config_error(
                "設定値が不正です。",
                details={"errors": exc.errors(include_url=False)},
                code=ErrorCode.CONFIG_INVALID_VALUE,
            )
        ) from exc
