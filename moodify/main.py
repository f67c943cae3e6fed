import logging
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from moodify import config
from moodify.dispatch import emotion_options
from moodify.errors import GatewayError
from moodify.forms import submit_login, submit_register
from moodify.schemas import (
    BoardSnapshot,
    EmotionOption,
    EmotionRequest,
    HistoryResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    SearchRequest,
    Session,
)
from moodify.state import AppState, get_state

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(levelname)s: %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# FastAPI app
# -----------------------------------------------------------------------------

app = FastAPI(title="Moodify API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_ORIGIN, "http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def current_session(
    token: Optional[str] = Depends(bearer_token),
    state: AppState = Depends(get_state),
) -> Optional[Session]:
    if not token:
        return None
    try:
        user = await state.gateway.get_user(token)
    except GatewayError as exc:
        logger.info("Ignoring unusable bearer token", extra={"error": exc.message[:200]})
        state.drop_board(token)
        return None
    return user.to_session(token) if user else None


# -----------------------------------------------------------------------------
# Auth routes
# -----------------------------------------------------------------------------


@app.post("/api/auth/login", response_model=LoginResponse)
async def login(body: LoginRequest, response: Response, state: AppState = Depends(get_state)):
    outcome = await submit_login(state.gateway, body.email, body.password)
    if not outcome.ok:
        response.status_code = 401 if outcome.submitted else 422
        return LoginResponse(ok=False, field_errors=outcome.field_errors)
    return LoginResponse(
        ok=True,
        navigate_to=outcome.navigate_to,
        access_token=outcome.session.access_token,
        session=outcome.session,
    )


@app.post("/api/auth/register", response_model=RegisterResponse)
async def register(body: RegisterRequest, response: Response, state: AppState = Depends(get_state)):
    outcome = await submit_register(
        state.gateway,
        body.username,
        body.email,
        body.password,
        redirect_to=config.signup_redirect_url(),
    )
    if not outcome.ok:
        response.status_code = 400 if outcome.submitted else 422
    return RegisterResponse(
        ok=outcome.ok,
        message=outcome.message,
        tone=outcome.tone,
        field_errors=outcome.field_errors,
        navigate_to=outcome.navigate_to,
        navigate_delay=outcome.navigate_delay,
    )


@app.post("/api/auth/logout")
async def logout(token: Optional[str] = Depends(bearer_token), state: AppState = Depends(get_state)):
    if token:
        try:
            await state.gateway.sign_out(token)
        except GatewayError as exc:
            logger.warning("Sign-out failed", extra={"error": exc.message[:200]})
        state.drop_board(token)
    return {"ok": True, "navigate_to": "/login"}


@app.get("/api/auth/me", response_model=Session)
async def me(session: Optional[Session] = Depends(current_session)):
    if session is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return session


# -----------------------------------------------------------------------------
# Main page: emotion buttons and search
# -----------------------------------------------------------------------------


@app.get("/api/emotions", response_model=List[EmotionOption])
def emotions():
    return emotion_options()


@app.get("/api/board", response_model=BoardSnapshot)
async def board(
    token: Optional[str] = Depends(bearer_token),
    session: Optional[Session] = Depends(current_session),
    state: AppState = Depends(get_state),
):
    return state.board_for(token if session else None).snapshot()


@app.post("/api/board/emotion", response_model=BoardSnapshot)
async def choose_emotion(
    body: EmotionRequest,
    token: Optional[str] = Depends(bearer_token),
    session: Optional[Session] = Depends(current_session),
    state: AppState = Depends(get_state),
):
    emotion = (body.emotion or "").strip()
    if not emotion:
        raise HTTPException(status_code=400, detail="Emotion is required")
    board_ = state.board_for(token if session else None)
    return await board_.choose_emotion(emotion, session)


@app.post("/api/board/search", response_model=BoardSnapshot)
async def search(
    body: SearchRequest,
    token: Optional[str] = Depends(bearer_token),
    session: Optional[Session] = Depends(current_session),
    state: AppState = Depends(get_state),
):
    board_ = state.board_for(token if session else None)
    return await board_.search(body.query)


# -----------------------------------------------------------------------------
# My page: recently played
# -----------------------------------------------------------------------------


@app.get("/api/history", response_model=HistoryResponse)
async def history(token: Optional[str] = Depends(bearer_token), state: AppState = Depends(get_state)):
    page = await state.history.load_history(token)
    payload = HistoryResponse(
        display_name=page.display_name,
        tracks=page.tracks,
        message=page.message,
        redirect_to=page.redirect_to,
    )
    if page.redirect_to:
        return JSONResponse(status_code=401, content=payload.model_dump())
    return payload


@app.delete("/api/history")
async def clear_history(token: Optional[str] = Depends(bearer_token), state: AppState = Depends(get_state)):
    try:
        deleted = await state.history.clear_history(token)
    except GatewayError as exc:
        raise HTTPException(status_code=502, detail=exc.message)
    if deleted is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return {"deleted": deleted}


# -----------------------------------------------------------------------------
# Health / debug
# -----------------------------------------------------------------------------


@app.get("/api/health")
def health():
    return {"ok": True}


@app.get("/api/debug/config")
def debug_config():
    # Do NOT return secrets; just booleans and important settings
    return {
        "has_lastfm_api_key": bool(config.LASTFM_API_KEY),
        "managed_backend": config.use_managed_backend(),
        "signup_redirect": config.signup_redirect_url(),
        "frontend_origin": config.FRONTEND_ORIGIN,
        "emotions": [o.model_dump() for o in emotion_options()],
    }


# -----------------------------------------------------------------------------
# Run with: uvicorn moodify.main:app --reload --port 8000
# -----------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run("moodify.main:app", host=config.API_HOST, port=config.API_PORT, reload=True)
