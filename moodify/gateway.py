from __future__ import annotations

"""Capability set of the auth/table backend and the records it hands back.

Two implementations exist: ``clients.supabase_client.SupabaseGateway`` talks to
the managed service, ``local_store.SqlSessionGateway`` keeps everything in a
SQLAlchemy database. Both raise ``errors.GatewayError`` on failure.
"""

from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from .schemas import Session


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)
    identities: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def display_name(self) -> Optional[str]:
        meta = self.user_metadata or {}
        return meta.get("full_name") or meta.get("username") or self.email

    def to_session(self, access_token: str = "") -> Session:
        return Session(
            user_id=self.id,
            email=self.email,
            display_name=self.display_name,
            access_token=access_token,
        )


class AuthSession(BaseModel):
    access_token: str
    user: AuthUser


class SignUpResult(BaseModel):
    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None

    @property
    def already_registered(self) -> bool:
        # The backend hides existing accounts behind a user record with no identities
        return self.user is not None and len(self.user.identities) == 0


class SessionGateway(Protocol):
    def bind(self, access_token: Optional[str]) -> "SessionGateway":
        """Return a gateway whose table calls act on behalf of the token's user."""
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def sign_up(
        self, email: str, password: str, profile: Dict[str, Any], redirect_to: str
    ) -> SignUpResult: ...

    async def get_user(self, access_token: str) -> Optional[AuthUser]: ...

    async def sign_out(self, access_token: str) -> None: ...

    async def select(
        self,
        table: str,
        filters: Dict[str, Any],
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]: ...

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]: ...

    async def delete(self, table: str, filters: Dict[str, Any]) -> int: ...
