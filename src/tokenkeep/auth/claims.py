"""IDトークン/アクセストークンのクレーム処理。"""

from __future__ import annotations

from typing import Any

import jwt

from tokenkeep.models import Account


def decode_unverified(token: str) -> dict[str, Any]:
    """署名を検証せずにJWTのクレームを取り出す。

    トークンは発行元から直接受け取ったものに限って使うこと。
    JWTでない場合は空の辞書を返す。
    """

    try:
        decoded = jwt.decode(
            token,
            options={"verify_signature": False, "verify_aud": False, "verify_exp": False},
        )
    except jwt.PyJWTError:
        return {}

    if not isinstance(decoded, dict):
        return {}
    return decoded


def account_from_claims(claims: dict[str, Any]) -> Account | None:
    """IDトークンのクレームからアカウントを組み立てる。

    home_account_id は ``{oid}.{tid}`` 形式。oidが無ければsubを使う。
    """

    object_id = claims.get("oid") or claims.get("sub")
    tenant_id = claims.get("tid")
    if not isinstance(object_id, str) or not object_id:
        return None

    home_account_id = f"{object_id}.{tenant_id}" if isinstance(tenant_id, str) and tenant_id else object_id
    username = claims.get("preferred_username") or claims.get("email") or claims.get("upn")
    return Account(
        home_account_id=home_account_id,
        username=username if isinstance(username, str) else None,
        tenant_id=tenant_id if isinstance(tenant_id, str) else None,
    )


def expiry_from_access_token(access_token: str) -> float | None:
    exp = decode_unverified(access_token).get("exp")
    if isinstance(exp, (int, float)):
        return float(exp)
    return None
