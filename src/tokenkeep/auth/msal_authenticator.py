"""MSAL (Microsoft Authentication Library) を利用する Authenticator。"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, FrozenSet

import httpx
import msal

from tokenkeep.auth.base import (
    Authenticator,
    AuthenticatorError,
    ClientHandle,
    NETWORK_ERROR,
    InteractionRequiredError,
    UserCancelledError,
)
from tokenkeep.auth.claims import account_from_claims, decode_unverified, expiry_from_access_token
from tokenkeep.models import SYSTEM_ACCOUNT, Account, Prompt, TokenRecord, normalize_scopes

logger = logging.getLogger(__name__)

# MSALが自動で付与するため、呼び出し側から渡すとエラーになる
RESERVED_SCOPES = frozenset({"openid", "profile", "offline_access"})

CANCELLED_ERRORS = frozenset({"access_denied", "authentication_canceled"})
INTERACTION_REQUIRED_ERRORS = frozenset(
    {"interaction_required", "login_required", "consent_required", "invalid_grant"}
)


class MsalAuthenticator(Authenticator):
    """msal.PublicClientApplication にプロトコル処理を委譲する。"""

    provider_name = "msal"

    def __init__(self, timeout_seconds: float = 30.0, interactive_timeout_seconds: float | None = None) -> None:
        """MsalAuthenticatorを初期化する。

        Args:
            timeout_seconds: トークンエンドポイントへのHTTPタイムアウト。
            interactive_timeout_seconds: 対話型サインインの待機上限。Noneなら無制限。
        """

        self._timeout_seconds = timeout_seconds
        self._interactive_timeout_seconds = interactive_timeout_seconds
        self._app_lock = asyncio.Lock()

    def build_client(self, client_id: str, authority_url: str, redirect_uri: str | None) -> ClientHandle:
        # PublicClientApplicationは生成時にauthorityの検出を行うため、初回利用時まで遅延させる
        return ClientHandle(client_id=client_id, authority_url=authority_url, redirect_uri=redirect_uri)

    async def list_cached_accounts(self, client: ClientHandle) -> list[Account]:
        app = await self._application(client)
        raw_accounts = await asyncio.to_thread(app.get_accounts)
        return [self._to_account(raw) for raw in raw_accounts if raw.get("home_account_id")]

    async def acquire_token_silent(
        self,
        client: ClientHandle,
        scopes: FrozenSet[str],
        account: Account,
        refresh_token: str | None,
    ) -> TokenRecord:
        app = await self._application(client)
        requested = self._request_scopes(scopes)

        if refresh_token:
            result = await self._call(app.acquire_token_by_refresh_token, refresh_token, requested)
        else:
            raw_account = await self._find_native_account(app, account)
            if raw_account is None:
                raise InteractionRequiredError("サイレント取得に使えるアカウントがありません。")
            result = await self._call(app.acquire_token_silent, requested, raw_account)
            if not result:
                raise InteractionRequiredError("キャッシュに有効なトークンがありません。")

        return self._to_record(result, scopes, fallback_account=account, refresh_token_fallback=refresh_token)

    async def acquire_token_interactive(
        self,
        client: ClientHandle,
        scopes: FrozenSet[str],
        account_hint: Account | None,
        prompt: Prompt,
    ) -> TokenRecord:
        app = await self._application(client)
        kwargs: dict[str, Any] = {"prompt": prompt.value}
        if account_hint is not None and account_hint.username:
            kwargs["login_hint"] = account_hint.username
        if self._interactive_timeout_seconds is not None:
            kwargs["timeout"] = self._interactive_timeout_seconds

        result = await self._call(app.acquire_token_interactive, self._request_scopes(scopes), **kwargs)
        return self._to_record(result, scopes, fallback_account=None, refresh_token_fallback=None)

    async def remove_account(self, client: ClientHandle, account: Account) -> None:
        app = await self._application(client)
        raw_account = await self._find_native_account(app, account)
        if raw_account is not None:
            await asyncio.to_thread(app.remove_account, raw_account)

    async def _application(self, client: ClientHandle) -> msal.PublicClientApplication:
        if client.native is not None:
            return client.native

        async with self._app_lock:
            # 待機中に別の呼び出しが生成済みの場合がある
            if client.native is None:
                http_client = httpx.Client(timeout=self._timeout_seconds)
                try:
                    client.native = await asyncio.to_thread(
                        msal.PublicClientApplication,
                        client.client_id,
                        authority=client.authority_url,
                        http_client=http_client,
                    )
                except ValueError as exc:
                    http_client.close()
                    raise AuthenticatorError("invalid_authority", str(exc)) from exc
                except (httpx.TransportError, OSError) as exc:
                    http_client.close()
                    raise AuthenticatorError(NETWORK_ERROR, str(exc)) from exc
        return client.native

    async def _call(self, method: Any, *args: Any, **kwargs: Any) -> dict[str, Any] | None:
        try:
            result = await asyncio.to_thread(method, *args, **kwargs)
        except (httpx.TransportError, OSError) as exc:
            raise AuthenticatorError(NETWORK_ERROR, str(exc)) from exc

        if result and "error" in result:
            self._raise_for_error(result)
        return result

    async def _find_native_account(
        self, app: msal.PublicClientApplication, account: Account
    ) -> dict[str, Any] | None:
        if account == SYSTEM_ACCOUNT:
            return None
        raw_accounts = await asyncio.to_thread(app.get_accounts)
        for raw in raw_accounts:
            if raw.get("home_account_id") == account.home_account_id:
                return raw
        return None

    def _raise_for_error(self, result: dict[str, Any]) -> None:
        error = str(result.get("error"))
        description = result.get("error_description") or error
        if error in CANCELLED_ERRORS:
            raise UserCancelledError(description)
        if error in INTERACTION_REQUIRED_ERRORS:
            raise InteractionRequiredError(description)
        raise AuthenticatorError(error, description)

    def _request_scopes(self, scopes: FrozenSet[str]) -> list[str]:
        return sorted(scope for scope in scopes if scope not in RESERVED_SCOPES)

    def _to_record(
        self,
        result: dict[str, Any] | None,
        requested: FrozenSet[str],
        fallback_account: Account | None,
        refresh_token_fallback: str | None,
    ) -> TokenRecord:
        if not result or not isinstance(result.get("access_token"), str):
            raise AuthenticatorError("invalid_response", "アクセストークンがレスポンスに含まれていません。")

        access_token = result["access_token"]
        claims = result.get("id_token_claims")
        if not isinstance(claims, dict):
            id_token = result.get("id_token")
            claims = decode_unverified(id_token) if isinstance(id_token, str) else {}

        # リフレッシュでは識別子が変わらないため、既知のアカウントをそのまま使う
        if fallback_account is not None and fallback_account != SYSTEM_ACCOUNT:
            account = fallback_account
        else:
            account = account_from_claims(claims)
        if account is None:
            raise AuthenticatorError("invalid_response", "アカウント情報がレスポンスに含まれていません。")

        expires_at = None
        expires_in = result.get("expires_in")
        if isinstance(expires_in, (int, float)):
            expires_at = time.time() + float(expires_in)
        else:
            expires_at = expiry_from_access_token(access_token)

        granted = result.get("scope")
        if isinstance(granted, str):
            scopes = normalize_scopes(granted.split()) | requested
        else:
            scopes = requested

        return TokenRecord(
            access_token=access_token,
            expires_at=expires_at,
            account=account,
            scopes=scopes,
            refresh_token=result.get("refresh_token") or refresh_token_fallback,
            token_type=result.get("token_type"),
        )

    def _to_account(self, raw: dict[str, Any]) -> Account:
        return Account(
            home_account_id=str(raw["home_account_id"]),
            username=raw.get("username"),
            tenant_id=raw.get("realm"),
        )
