import asyncio
import hashlib
import logging
import os
import secrets
import time
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database
from chat import ChatService, NotConnectedError
from database import PASSWORD_RESETS, REQUESTS, SESSIONS, DocumentStore, StoreError
from lifecycle import ActionResult, ConnectionManager
from profiles import ProfileStore
from schemas import (
    LoginRequest,
    OnboardingRequest,
    PasswordReset,
    PasswordResetConfirm,
    PasswordResetRequest,
    Profile,
    ProfileUpdate,
    SendMessageRequest,
    Session,
    SignupRequest,
)
from skills import search_skills, skill_suggestions

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_DAYS", "7")) * 24 * 60 * 60
RESET_TTL_SECONDS = 60 * 60

app = FastAPI(title="Skill Swap API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Utility

def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def get_store() -> DocumentStore:
    if database.store is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return database.store


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def _raise_for(result: ActionResult) -> Dict[str, Any]:
    if not result.ok:
        raise HTTPException(status_code=503, detail=result.message)
    return result.model_dump()


# Auth helpers

def user_for_token(store: DocumentStore, token: str) -> Optional[Profile]:
    sessions = store.query(SESSIONS, {"token": token})
    if not sessions or int(sessions[0].get("expires_at", 0)) <= int(time.time()):
        return None
    return ProfileStore(store).get(sessions[0]["user_id"])


def _bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Invalid auth scheme")
    return token


def get_current_user(authorization: Optional[str] = Header(None),
                     store: DocumentStore = Depends(get_store)) -> Profile:
    user = user_for_token(store, _bearer(authorization))
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user


@app.get("/")
def root():
    return {"message": "Skill Swap API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Connected & Working"
            response["database_name"] = database.db.name
            response["connection_status"] = "Connected"
            response["collections"] = database.db.list_collection_names()
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth endpoints
@app.post("/auth/signup")
def signup(payload: SignupRequest, store: DocumentStore = Depends(get_store)):
    profiles = ProfileStore(store)
    if profiles.find_by_email(payload.email):
        raise HTTPException(status_code=400, detail="Email already registered")
    profile = profiles.create(payload.name, payload.email, hash_password(payload.password),
                              payload.skills, payload.wants_to_learn)
    return {"id": profile.id, "email": profile.email, "name": profile.name,
            "profile_complete": profile.profile_complete}


@app.post("/auth/login")
def login(payload: LoginRequest, store: DocumentStore = Depends(get_store)):
    user = ProfileStore(store).find_by_email(payload.email)
    if not user or user.get("password_hash") != hash_password(payload.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = secrets.token_urlsafe(32)
    session = Session(user_id=user["id"], token=token, expires_at=int(time.time()) + SESSION_TTL_SECONDS)
    store.add(SESSIONS, session.model_dump())
    logger.info("User %s signed in", user["id"])
    return {"token": token, "user": {"id": user["id"], "name": user["name"], "email": user["email"],
                                     "profile_complete": bool(user.get("profile_complete"))}}


@app.post("/auth/logout")
def logout(authorization: Optional[str] = Header(None), store: DocumentStore = Depends(get_store)):
    removed = store.delete_many(SESSIONS, {"token": _bearer(authorization)})
    return {"logged_out": removed > 0}


@app.post("/auth/password-reset")
def request_password_reset(payload: PasswordResetRequest, store: DocumentStore = Depends(get_store)):
    user = ProfileStore(store).find_by_email(payload.email)
    if user:
        store.delete_many(PASSWORD_RESETS, {"user_id": user["id"]})
        token = secrets.token_urlsafe(32)
        reset = PasswordReset(user_id=user["id"], email=user["email"], token=token,
                              expires_at=int(time.time()) + RESET_TTL_SECONDS)
        store.add(PASSWORD_RESETS, reset.model_dump())
        # In production the token goes out by email
        logger.info("Password reset issued for user %s", user["id"])
    return {"status": "ok", "message": "If that account exists, a reset email is on its way."}


@app.post("/auth/password-reset/confirm")
def confirm_password_reset(payload: PasswordResetConfirm, store: DocumentStore = Depends(get_store)):
    resets = store.query(PASSWORD_RESETS, {"token": payload.token})
    if not resets:
        raise HTTPException(status_code=400, detail="Invalid reset token")
    reset = resets[0]
    store.delete_many(PASSWORD_RESETS, {"user_id": reset["user_id"]})
    if int(time.time()) > int(reset.get("expires_at", 0)):
        raise HTTPException(status_code=400, detail="Reset token expired")
    ProfileStore(store).set_password_hash(reset["user_id"], hash_password(payload.password))
    store.delete_many(SESSIONS, {"user_id": reset["user_id"]})
    return {"status": "ok"}


# Profile endpoints
@app.get("/me")
def get_me(user: Profile = Depends(get_current_user)):
    return user


@app.put("/me")
def update_me(update: ProfileUpdate, user: Profile = Depends(get_current_user),
              store: DocumentStore = Depends(get_store)):
    return ProfileStore(store).update(user.id, **update.model_dump(exclude_none=True))


@app.post("/me/onboarding")
def onboarding(payload: OnboardingRequest, user: Profile = Depends(get_current_user),
               store: DocumentStore = Depends(get_store)):
    return ProfileStore(store).complete_onboarding(user.id, payload.skills, payload.wants_to_learn)


@app.get("/profile/{user_id}")
def public_profile(user_id: str, store: DocumentStore = Depends(get_store)):
    profile = ProfileStore(store).get(user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="User not found")
    return profile.model_dump(exclude={"email"})


@app.get("/skills")
def skills(q: str = Query("", description="Search text")):
    return {"skills": search_skills(q)}


@app.get("/skills/suggestions")
def suggestions(user: Profile = Depends(get_current_user)):
    return {"skills": skill_suggestions(user.skills + user.wants_to_learn)}


# Discovery and requests
@app.get("/dashboard")
def dashboard(user: Profile = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    manager = ConnectionManager(store, user.id)
    try:
        return manager.start()
    finally:
        manager.stop()


def _check_likeable(store: DocumentStore, user: Profile, other_id: str):
    if other_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot connect with yourself")
    if ChatService(store, user.id).is_connected(other_id):
        raise HTTPException(status_code=400, detail="Already connected with this user")


@app.post("/users/{other_id}/like")
def like(other_id: str, user: Profile = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    _check_likeable(store, user, other_id)
    return _raise_for(ConnectionManager(store, user.id).like(other_id))


@app.post("/users/{other_id}/pass")
def pass_user(other_id: str, user: Profile = Depends(get_current_user),
              store: DocumentStore = Depends(get_store)):
    return _raise_for(ConnectionManager(store, user.id).pass_user(other_id))


def _incoming_request(store: DocumentStore, request_id: str, user: Profile) -> Dict[str, Any]:
    req = store.get(REQUESTS, request_id)
    if not req or req.get("to_user_id") != user.id:
        raise HTTPException(status_code=404, detail="Request not found")
    return req


@app.post("/requests/{request_id}/accept")
def accept_request(request_id: str, user: Profile = Depends(get_current_user),
                   store: DocumentStore = Depends(get_store)):
    req = _incoming_request(store, request_id, user)
    return _raise_for(ConnectionManager(store, user.id).accept_request(request_id, req["from_user_id"]))


@app.post("/requests/{request_id}/decline")
def decline_request(request_id: str, user: Profile = Depends(get_current_user),
                    store: DocumentStore = Depends(get_store)):
    _incoming_request(store, request_id, user)
    return _raise_for(ConnectionManager(store, user.id).decline_request(request_id))


@app.get("/connections")
def connections(user: Profile = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    service = ChatService(store, user.id)
    profiles = ProfileStore(store)
    out = []
    for conn in service.connections():
        other = profiles.get(conn.other_user_id(user.id))
        if other:
            out.append({"id": conn.id, "user": other.model_dump(exclude={"email"}),
                        "created_at": conn.created_at, "last_message_preview": conn.last_message_preview})
    return {"connections": out}


# Chat
@app.get("/chat")
def chat_list(user: Profile = Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return {"chats": ChatService(store, user.id).summaries()}


@app.get("/chat/{other_id}")
def chat_history(other_id: str, user: Profile = Depends(get_current_user),
                 store: DocumentStore = Depends(get_store)):
    service = ChatService(store, user.id)
    if not service.is_connected(other_id):
        raise HTTPException(status_code=403, detail="Not connected with this user")
    return {"messages": service.history(other_id)}


@app.post("/chat/{other_id}")
def chat_send(other_id: str, body: SendMessageRequest, user: Profile = Depends(get_current_user),
              store: DocumentStore = Depends(get_store)):
    try:
        return ChatService(store, user.id).send(other_id, body.text)
    except NotConnectedError:
        raise HTTPException(status_code=403, detail="Not connected with this user")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# Realtime
async def _pump(websocket: WebSocket, queue: asyncio.Queue, handle):
    """Send queued frames while feeding incoming frames to ``handle``."""

    async def sender():
        while True:
            frame = await queue.get()
            await websocket.send_json(jsonable_encoder(frame))

    async def receiver():
        try:
            while True:
                data = await websocket.receive_json()
                reply = await handle(data)
                if reply is not None:
                    queue.put_nowait(reply)
        except WebSocketDisconnect:
            pass

    tasks = [asyncio.ensure_future(sender()), asyncio.ensure_future(receiver())]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    for task in done:
        if task.exception() and not isinstance(task.exception(), WebSocketDisconnect):
            logger.error("Websocket task failed: %r", task.exception())


@app.websocket("/ws/dashboard")
async def dashboard_feed(websocket: WebSocket, token: str = Query(...),
                         store: DocumentStore = Depends(get_store)):
    user = await run_in_threadpool(user_for_token, store, token)
    if user is None:
        await websocket.close(code=1008)
        return
    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    manager = ConnectionManager(store, user.id)
    manager.add_listener(
        lambda state: loop.call_soon_threadsafe(queue.put_nowait, {"type": "state", "state": state}))

    def like_action(d):
        _check_likeable(store, user, d["user_id"])
        return manager.like(d["user_id"])

    def accept_action(d):
        req = _incoming_request(store, d["request_id"], user)
        return manager.accept_request(req["id"], req["from_user_id"])

    def decline_action(d):
        req = _incoming_request(store, d["request_id"], user)
        return manager.decline_request(req["id"])

    actions = {
        "like": like_action,
        "pass": lambda d: manager.pass_user(d["user_id"]),
        "accept": accept_action,
        "decline": decline_action,
    }

    async def handle(data):
        if not isinstance(data, dict):
            return {"type": "error", "detail": "Frame must be a JSON object"}
        action = data.get("action")
        if action == "refresh":
            await run_in_threadpool(manager.refresh)
            return None
        if action not in actions:
            return {"type": "error", "detail": f"Unknown action {action!r}"}
        try:
            result = await run_in_threadpool(actions[action], data)
        except KeyError as e:
            return {"type": "error", "detail": f"Missing field {e.args[0]}"}
        except HTTPException as e:
            return {"type": "error", "detail": e.detail}
        return {"type": "result", "action": action, **result.model_dump()}

    await run_in_threadpool(manager.start)
    try:
        await _pump(websocket, queue, handle)
    finally:
        manager.stop()


@app.websocket("/ws/chat/{other_id}")
async def chat_feed(websocket: WebSocket, other_id: str, token: str = Query(...),
                    store: DocumentStore = Depends(get_store)):
    user = await run_in_threadpool(user_for_token, store, token)
    if user is None:
        await websocket.close(code=1008)
        return
    service = ChatService(store, user.id)
    if not await run_in_threadpool(service.is_connected, other_id):
        await websocket.close(code=1008)
        return
    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    async def handle(data):
        if not isinstance(data, dict):
            return {"type": "error", "detail": "Frame must be a JSON object"}
        try:
            await run_in_threadpool(service.send, other_id, data.get("text", ""))
        except ValueError as e:
            return {"type": "error", "detail": str(e)}
        except NotConnectedError:
            return {"type": "error", "detail": "Not connected with this user"}
        return None

    await run_in_threadpool(service.history, other_id)
    unsubscribe = await run_in_threadpool(
        service.subscribe, other_id,
        lambda messages: loop.call_soon_threadsafe(queue.put_nowait, {"type": "messages", "messages": messages}))
    try:
        await _pump(websocket, queue, handle)
    finally:
        unsubscribe()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
