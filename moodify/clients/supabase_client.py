from __future__ import annotations

"""Session gateway over the managed auth (GoTrue) and table (PostgREST) endpoints."""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import orjson
from pydantic import BaseModel, ValidationError

from ..errors import DuplicateRowError, GatewayError
from ..gateway import AuthSession, AuthUser, SignUpResult

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"HTTP {resp.status_code}"


def _json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise GatewayError("Malformed response from session backend", status=502) from exc


def _parse(model: Type[ModelT], data: Any, path: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.error("Unexpected session backend payload", extra={"path": path, "error": str(exc)[:200]})
        raise GatewayError("Unexpected response from session backend", status=502) from exc


def _filter_params(filters: Dict[str, Any]) -> Dict[str, str]:
    return {column: f"eq.{value}" for column, value in (filters or {}).items()}


class SupabaseGateway:
    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        access_token: Optional[str] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self._transport = transport
        # Bearer used for table calls so rows pass row-level security
        self.access_token = access_token

    def bind(self, access_token: Optional[str]) -> "SupabaseGateway":
        return SupabaseGateway(
            self.url,
            self.anon_key,
            timeout=self.timeout,
            transport=self._transport,
            access_token=access_token,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.url, timeout=self.timeout, transport=self._transport)

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        token = access_token or self.access_token or self.anon_key
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client() as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Session backend unreachable", extra={"path": path, "error": str(exc)[:200]})
            raise GatewayError(f"Network error: {exc}") from exc
        if resp.status_code >= 400:
            message = _error_message(resp)
            if resp.status_code == 409:
                raise DuplicateRowError(message, status=resp.status_code)
            raise GatewayError(message, status=resp.status_code)
        return resp

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> AuthSession:
        resp = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            headers=self._headers(),
            content=orjson.dumps({"email": email, "password": password}),
        )
        return _parse(AuthSession, _json(resp), "/auth/v1/token")

    async def sign_up(
        self, email: str, password: str, profile: Dict[str, Any], redirect_to: str
    ) -> SignUpResult:
        resp = await self._request(
            "POST",
            "/auth/v1/signup",
            params={"redirect_to": redirect_to},
            headers=self._headers(),
            content=orjson.dumps({"email": email, "password": password, "data": profile or {}}),
        )
        data = _json(resp) or {}
        if not isinstance(data, dict):
            raise GatewayError("Unexpected response from session backend", status=502)
        # With email confirmation on, the user object comes back at the top level
        if "user" in data or "access_token" in data:
            user = data.get("user")
            session = _parse(AuthSession, data, "/auth/v1/signup") if data.get("access_token") else None
        else:
            user = data if data.get("id") else None
            session = None
        return SignUpResult(user=_parse(AuthUser, user, "/auth/v1/signup") if user else None, session=session)

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        if not access_token:
            return None
        resp = await self._request("GET", "/auth/v1/user", headers=self._headers(access_token))
        data = _json(resp)
        return _parse(AuthUser, data, "/auth/v1/user") if data else None

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/auth/v1/logout", headers=self._headers(access_token))

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    async def select(
        self,
        table: str,
        filters: Dict[str, Any],
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"select": "*", **_filter_params(filters)}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = limit
        resp = await self._request("GET", f"/rest/v1/{table}", params=params, headers=self._headers())
        rows = resp.json()
        return rows if isinstance(rows, list) else []

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        headers = {**self._headers(), "Prefer": "return=representation"}
        resp = await self._request("POST", f"/rest/v1/{table}", headers=headers, content=orjson.dumps(row))
        rows = resp.json()
        if isinstance(rows, list) and rows:
            return rows[0]
        return dict(row)

    async def delete(self, table: str, filters: Dict[str, Any]) -> int:
        headers = {**self._headers(), "Prefer": "return=representation"}
        resp = await self._request(
            "DELETE", f"/rest/v1/{table}", params=_filter_params(filters), headers=headers
        )
        rows = resp.json() if resp.content else []
        return len(rows) if isinstance(rows, list) else 0
