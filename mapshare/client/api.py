"""Async HTTP client for the MapShare backend."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from jose import jwt, JWTError
from loguru import logger
from pydantic import BaseModel, field_validator

from mapshare.core.validation import validate_coordinates, validate_location
from mapshare.errors import (
    AuthenticationRequired,
    FetchError,
    ValidationError,
)


# ---------------------------
# Models
# ---------------------------

class PresenceRecord(BaseModel):
    user_id: str
    latitude: float
    longitude: float
    updated_at: datetime
    display_name: Optional[str] = None
    id: Optional[str] = None

    @field_validator("updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive timestamps; the server always writes UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def position(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "PresenceRecord":
        profile = row.get("profile") or {}
        return cls(
            id=row.get("id"),
            user_id=row["user_id"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            updated_at=row["updated_at"],
            display_name=profile.get("display_name"),
        )


# ---------------------------
# Session (auth collaborator)
# ---------------------------

class AccessTokenSession:
    """
    Holds the Supabase access token issued to this client.

    Only answers "who is signed in"; the backend does the real verification.
    """

    def __init__(self, access_token: Optional[str] = None):
        self._token = access_token

    def access_token(self) -> Optional[str]:
        return self._token

    def sign_in(self, access_token: str) -> None:
        self._token = access_token

    def sign_out(self) -> None:
        self._token = None

    def current_user_id(self) -> Optional[str]:
        if not self._token:
            return None
        try:
            claims = jwt.get_unverified_claims(self._token)
        except JWTError:
            logger.warning("Access token is not a JWT; treating session as signed out")
            return None

        exp = claims.get("exp")
        if exp is not None and exp < datetime.now(timezone.utc).timestamp():
            return None
        return claims.get("sub")


# ---------------------------
# Client
# ---------------------------

class MapShareClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[AccessTokenSession] = None,
        *,
        timeout: float = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or AccessTokenSession()
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "MapShareClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def feed_url(self) -> str:
        ws_base = self.base_url.replace("https://", "wss://").replace("http://", "ws://")
        return f"{ws_base}/v1/live-locations/ws"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.session.access_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            resp = await self._http.request(
                method, path, json=json, params=params, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise FetchError(f"{method} {path} failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code < 400:
            return data

        detail = data.get("detail") if isinstance(data, dict) else None
        detail = detail or f"Request failed with status {resp.status_code}"

        if resp.status_code == 401:
            raise AuthenticationRequired(str(detail))
        if resp.status_code == 400:
            raise ValidationError([str(detail)])
        raise FetchError(str(detail), status_code=resp.status_code)

    # ---- presence ----

    async def list_presence(self) -> List[PresenceRecord]:
        data = await self._request("GET", "/v1/live-locations")
        return [PresenceRecord.from_api(row) for row in data.get("data") or []]

    async def upsert_presence(self, latitude: float, longitude: float) -> PresenceRecord:
        errors = validate_coordinates(latitude, longitude)
        if errors:
            raise ValidationError(errors)

        data = await self._request(
            "POST",
            "/v1/live-locations/update",
            json={"latitude": latitude, "longitude": longitude},
        )
        return PresenceRecord.from_api(data["data"])

    async def delete_presence(self) -> None:
        await self._request("POST", "/v1/live-locations/stop")

    # ---- moderated locations ----

    async def list_locations(self) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/v1/locations")
        return data.get("data") or []

    async def create_location(
        self,
        name: str,
        latitude: float,
        longitude: float,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        errors = validate_location(name, description, latitude, longitude)
        if errors:
            raise ValidationError(errors)

        data = await self._request(
            "POST",
            "/v1/locations",
            json={
                "name": name,
                "description": description,
                "latitude": latitude,
                "longitude": longitude,
            },
        )
        return data["data"]

    async def update_location_status(self, location_id: str, status: str) -> Dict[str, Any]:
        data = await self._request(
            "POST", f"/v1/locations/{location_id}/status", json={"status": status}
        )
        return data["data"]

    async def delete_location(self, location_id: str) -> None:
        await self._request("DELETE", f"/v1/locations/{location_id}")

    async def check_admin(self) -> bool:
        data = await self._request("POST", "/v1/auth/check-admin")
        return bool(data["data"]["isAdmin"])
