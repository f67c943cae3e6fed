from __future__ import annotations

"""Pydantic models shared by the core flows and the HTTP layer."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class Track(BaseModel):
    name: str
    artist: str
    url: str = ""


class RecordedPlay(BaseModel):
    id: int
    user_id: str
    track_name: str
    artist_name: str
    url: str = ""
    emotion: str

    @field_validator("url", mode="before")
    @classmethod
    def _blank_url(cls, value):
        # Rows written by other clients may carry a NULL url
        return "" if value is None else value


class Session(BaseModel):
    """Authenticated user context handed out by the session backend."""

    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    access_token: str = Field(default="", repr=False)


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class RegisterRequest(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""


class EmotionRequest(BaseModel):
    emotion: str


class SearchRequest(BaseModel):
    query: str = ""


class EmotionOption(BaseModel):
    label: str
    tag: str


class BoardSnapshot(BaseModel):
    tracks: List[Track]
    loading: bool
    alert: Optional[str] = None
    emotion: Optional[str] = None


class LoginResponse(BaseModel):
    ok: bool
    field_errors: dict = Field(default_factory=dict)
    navigate_to: Optional[str] = None
    access_token: Optional[str] = None
    session: Optional[Session] = None


class RegisterResponse(BaseModel):
    ok: bool
    message: Optional[str] = None
    tone: Literal["info", "error"] = "error"
    field_errors: dict = Field(default_factory=dict)
    navigate_to: Optional[str] = None
    navigate_delay: Optional[float] = None


class HistoryResponse(BaseModel):
    display_name: Optional[str] = None
    tracks: List[RecordedPlay]
    message: Optional[str] = None
    redirect_to: Optional[str] = None
