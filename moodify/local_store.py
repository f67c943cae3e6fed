from __future__ import annotations

"""SQLAlchemy-backed session gateway for local development and tests.

Mirrors the managed service closely enough that the form flows see the same
"Invalid login credentials" error and the same "existing account -> user
without identities" sign-up answer. Accounts are usable as soon as they are
created; there is no local email confirmation step.
"""

import datetime
import logging
import secrets
import uuid
from typing import Any, Dict, List, Optional, Type

from passlib.context import CryptContext
from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, create_engine, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import DuplicateRowError, GatewayError
from .gateway import AuthSession, AuthUser, SignUpResult

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# -----------------------------------------------------------------------------
# Tables
# -----------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(200))
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AuthToken(Base):
    __tablename__ = "auth_tokens"
    token: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())


class RecentTrack(Base):
    __tablename__ = "recent_tracks"
    __table_args__ = (
        UniqueConstraint("user_id", "track_name", "artist_name", "emotion", name="uq_recent_tracks_play"),
    )
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    track_name: Mapped[str] = mapped_column(String(500))
    artist_name: Mapped[str] = mapped_column(String(500))
    url: Mapped[str] = mapped_column(String(1000), default="")
    emotion: Mapped[str] = mapped_column(String(100))
    created_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())


TABLES: Dict[str, Type[Base]] = {
    "recent_tracks": RecentTrack,
}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def _row_to_dict(obj: Base) -> Dict[str, Any]:
    data = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.name)
        if isinstance(value, datetime.datetime):
            value = value.isoformat()
        data[column.name] = value
    return data


def _auth_user(user: User, with_identity: bool = True) -> AuthUser:
    identities = [{"provider": "email", "identity_id": user.id}] if with_identity else []
    return AuthUser(
        id=user.id,
        email=user.email,
        user_metadata={"username": user.username} if user.username else {},
        identities=identities,
    )


class SqlSessionGateway:
    def __init__(
        self,
        database_url: str = "sqlite:///./moodify.db",
        engine=None,
    ):
        if engine is None:
            kwargs: Dict[str, Any] = {"echo": False, "future": True}
            if database_url.startswith("sqlite"):
                kwargs["connect_args"] = {"check_same_thread": False}
                if database_url in ("sqlite://", "sqlite:///:memory:"):
                    kwargs["poolclass"] = StaticPool
            engine = create_engine(database_url, **kwargs)
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(engine)

    def bind(self, access_token: Optional[str]) -> "SqlSessionGateway":
        return self

    def _session(self) -> Session:
        return self._sessions()

    def _model(self, table: str) -> Type[Base]:
        model = TABLES.get(table)
        if model is None:
            raise GatewayError(f"relation \"{table}\" does not exist", status=404)
        return model

    def _column(self, model: Type[Base], name: str):
        if name not in model.__table__.columns:
            raise GatewayError(f"column {model.__tablename__}.{name} does not exist", status=400)
        return getattr(model, name)

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def _issue_token(self, db: Session, user: User) -> str:
        token = secrets.token_urlsafe(32)
        db.add(AuthToken(token=token, user_id=user.id))
        return token

    async def sign_in(self, email: str, password: str) -> AuthSession:
        with self._session() as db:
            user = db.scalars(select(User).where(User.email == email.strip().lower())).first()
            if user is None or not verify_password(password, user.password_hash):
                raise GatewayError("Invalid login credentials", status=400)
            token = self._issue_token(db, user)
            db.commit()
            logger.info("Local sign-in", extra={"user_id": user.id})
            return AuthSession(access_token=token, user=_auth_user(user))

    async def sign_up(
        self, email: str, password: str, profile: Dict[str, Any], redirect_to: str
    ) -> SignUpResult:
        normalized = email.strip().lower()
        with self._session() as db:
            existing = db.scalars(select(User).where(User.email == normalized)).first()
            if existing is not None:
                return SignUpResult(user=_auth_user(existing, with_identity=False))
            user = User(
                id=str(uuid.uuid4()),
                email=normalized,
                username=(profile or {}).get("username"),
                password_hash=hash_password(password),
            )
            db.add(user)
            session = AuthSession(access_token=self._issue_token(db, user), user=_auth_user(user))
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise GatewayError("User already registered", status=422) from exc
            logger.info(
                "Local sign-up",
                extra={"user_id": user.id, "redirect_to": redirect_to},
            )
            return SignUpResult(user=_auth_user(user), session=session)

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        if not access_token:
            return None
        with self._session() as db:
            row = db.get(AuthToken, access_token)
            if row is None:
                raise GatewayError("invalid JWT: unable to parse or verify signature", status=401)
            user = db.get(User, row.user_id)
            return _auth_user(user) if user else None

    async def sign_out(self, access_token: str) -> None:
        with self._session() as db:
            row = db.get(AuthToken, access_token)
            if row is not None:
                db.delete(row)
                db.commit()

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
        model = self._model(table)
        stmt = select(model)
        for column, value in (filters or {}).items():
            stmt = stmt.where(self._column(model, column) == value)
        if order:
            col = self._column(model, order)
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            with self._session() as db:
                return [_row_to_dict(obj) for obj in db.scalars(stmt).all()]
        except SQLAlchemyError as exc:
            raise GatewayError(str(exc)) from exc

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(table)
        obj = model(**row)
        with self._session() as db:
            db.add(obj)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise DuplicateRowError("duplicate key value violates unique constraint", status=409) from exc
            except SQLAlchemyError as exc:
                db.rollback()
                raise GatewayError(str(exc)) from exc
            db.refresh(obj)
            return _row_to_dict(obj)

    async def delete(self, table: str, filters: Dict[str, Any]) -> int:
        model = self._model(table)
        try:
            with self._session() as db:
                q = db.query(model)
                for column, value in (filters or {}).items():
                    q = q.filter(self._column(model, column) == value)
                count = q.delete(synchronize_session=False)
                db.commit()
                return count
        except SQLAlchemyError as exc:
            raise GatewayError(str(exc)) from exc
