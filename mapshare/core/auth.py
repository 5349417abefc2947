import time
import uuid
from typing import Optional, Dict, Any

import requests
from fastapi import Header, HTTPException
from jose import jwt, JWTError
from jose.utils import base64url_decode
from loguru import logger

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.backends import default_backend

from mapshare.core import config


# JWKS cache (simple in-memory cache)
_JWKS_CACHE: Dict[str, Any] = {"ts": 0, "jwks": None}


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _get_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Authentication required")

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header format")

    token = parts[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    return token


# ------------------------------------------------------------
# JWKS Fetch + Cache
# ------------------------------------------------------------
def _fetch_jwks() -> Dict[str, Any]:
    """
    Fetch Supabase JWKS.
    Supabase requires apikey header (anon or service_role).
    """
    anon_key = config.SUPABASE_ANON_KEY
    if not anon_key:
        raise HTTPException(
            status_code=500,
            detail="SUPABASE_ANON_KEY not set (required for JWKS mode)",
        )

    url = f"{config.SUPABASE_URL}/auth/v1/.well-known/jwks.json"

    try:
        resp = requests.get(url, headers={"apikey": anon_key}, timeout=10)
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"[auth] JWKS fetch failed: {e}")
        raise HTTPException(status_code=500, detail="Unable to fetch JWKS")

    if resp.status_code != 200 or "keys" not in data:
        raise HTTPException(
            status_code=500,
            detail=f"Invalid JWKS response: HTTP {resp.status_code}",
        )

    return data


def _get_cached_jwks() -> Dict[str, Any]:
    now = time.time()

    if (
        _JWKS_CACHE["jwks"]
        and now - _JWKS_CACHE["ts"] < config.JWKS_TTL_SECONDS
    ):
        return _JWKS_CACHE["jwks"]

    jwks = _fetch_jwks()
    _JWKS_CACHE["jwks"] = jwks
    _JWKS_CACHE["ts"] = now

    return jwks


# ------------------------------------------------------------
# JWK → Public Key
# ------------------------------------------------------------
def _public_key_from_jwk(jwk: Dict[str, Any]):
    """
    Supabase ES256 JWK contains x/y coordinates.
    Build EC public key for verification.
    """

    x = base64url_decode(jwk["x"].encode())
    y = base64url_decode(jwk["y"].encode())

    public_numbers = ec.EllipticCurvePublicNumbers(
        int.from_bytes(x, "big"),
        int.from_bytes(y, "big"),
        ec.SECP256R1(),
    )

    return public_numbers.public_key(default_backend())


# ------------------------------------------------------------
# Verification Modes
# ------------------------------------------------------------
def _verify_jwt_hs256(token: str) -> Dict[str, Any]:
    """
    Legacy HS256 verification using SUPABASE_JWT_SECRET
    """
    secret = config.SUPABASE_JWT_SECRET
    if not secret:
        raise HTTPException(status_code=500, detail="SUPABASE_JWT_SECRET not set")

    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def _verify_jwt_jwks(token: str) -> Dict[str, Any]:
    """
    ES256 verification using Supabase JWKS
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token header")

    alg = header.get("alg")
    kid = header.get("kid")

    if config.AUTH_DEBUG:
        logger.debug(f"[auth] header.alg={alg} header.kid={kid}")

    if not kid:
        raise HTTPException(status_code=401, detail="Token missing kid")

    if alg != "ES256":
        raise HTTPException(status_code=401, detail=f"Unsupported JWT alg: {alg}")

    jwks = _get_cached_jwks()

    key_data = next(
        (k for k in jwks["keys"] if k.get("kid") == kid),
        None,
    )

    if not key_data:
        # Refresh cache once (key rotation case)
        _JWKS_CACHE["jwks"] = None
        jwks = _get_cached_jwks()

        key_data = next(
            (k for k in jwks["keys"] if k.get("kid") == kid),
            None,
        )

    if not key_data:
        raise HTTPException(status_code=401, detail="Public key not found for kid")

    public_key = _public_key_from_jwk(key_data)

    try:
        return jwt.decode(
            token,
            public_key,
            algorithms=["ES256"],
            options={"verify_aud": False},
        )
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def _verify_with_supabase(token: str) -> Dict[str, Any]:
    """
    Ask Supabase Auth who the token belongs to.
    Slower (one round trip per request) but works with any signing setup.
    """
    from supabase import AuthError

    from mapshare.services.supabase_admin import supabase_admin

    try:
        res = supabase_admin().auth.get_user(token)
    except AuthError as e:
        logger.warning(f"[auth] supabase rejected token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    if not res or not res.user:
        raise HTTPException(status_code=401, detail="Invalid token")

    return {"sub": res.user.id}


_VERIFIERS = {
    "hs256": _verify_jwt_hs256,
    "jwks": _verify_jwt_jwks,
    "supabase": _verify_with_supabase,
}


def resolve_user_id(token: str) -> uuid.UUID:
    verifier = _VERIFIERS.get(config.AUTH_VERIFY_MODE)
    if verifier is None:
        raise HTTPException(
            status_code=500,
            detail=f"Invalid AUTH_VERIFY_MODE: {config.AUTH_VERIFY_MODE}",
        )

    payload = verifier(token)

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing sub claim")

    try:
        return uuid.UUID(str(sub))
    except ValueError:
        raise HTTPException(
            status_code=401,
            detail="Invalid sub claim (not a UUID)",
        )


# ------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------
def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
) -> uuid.UUID:

    token = _get_bearer_token(authorization)

    if config.AUTH_DEBUG:
        logger.debug(f"[auth] mode={config.AUTH_VERIFY_MODE} token_len={len(token)}")

    user_id = resolve_user_id(token)

    if config.AUTH_DEBUG:
        logger.debug(f"[auth] user_id={user_id}")

    return user_id


def get_optional_user_id(
    authorization: Optional[str] = Header(default=None),
) -> Optional[uuid.UUID]:
    """Anonymous callers (no or unusable token) get ``None`` instead of a 401."""
    if not authorization:
        return None

    try:
        return get_current_user_id(authorization)
    except HTTPException as e:
        if e.status_code != 401:
            raise
        logger.debug(f"[auth] treating caller as anonymous: {e.detail}")
        return None
