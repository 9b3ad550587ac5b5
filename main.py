import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo import MongoClient
from pymongo.errors import PyMongoError

import services
from auth import get_current_user, get_db, get_hasher, get_tokens, require_admin
from config import Settings
from database import Database
from errors import install_error_handlers
from schemas import (
    ChallengePayload,
    EventCreate,
    EventUpdate,
    LoginPayload,
    MatchResultUpdate,
    RegisterPayload,
    StatusUpdate,
)
from security import PasswordHasher, TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# Auth endpoints
@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterPayload, db=Depends(get_db), hasher=Depends(get_hasher), tokens=Depends(get_tokens)):
    return services.register_user(db, hasher, tokens, payload)


@router.post("/auth/login")
def login(payload: LoginPayload, db=Depends(get_db), hasher=Depends(get_hasher), tokens=Depends(get_tokens)):
    return services.login_user(db, hasher, tokens, payload)


# Users
@router.get("/users/profile")
def profile(current=Depends(get_current_user), db=Depends(get_db)):
    return services.get_profile(db, current)


@router.get("/users/dashboard")
def dashboard(current=Depends(get_current_user), db=Depends(get_db)):
    return services.get_dashboard(db, current)


# Matches
@router.post("/matches/challenge", status_code=status.HTTP_201_CREATED)
def challenge(payload: ChallengePayload, current=Depends(get_current_user), db=Depends(get_db)):
    return services.challenge_player(db, current, payload)


# Events
@router.get("/events")
def list_events(db=Depends(get_db)):
    return services.list_events(db)


@router.post("/events/register/{event_id}")
def register_event(event_id: str, current=Depends(get_current_user), db=Depends(get_db)):
    return services.register_for_event(db, current, event_id)


# Admin
@router.get("/admin/users")
def admin_users(current=Depends(require_admin), db=Depends(get_db)):
    return services.list_users(db)


@router.put("/admin/users/{user_id}/status")
def admin_user_status(user_id: str, payload: StatusUpdate, current=Depends(require_admin), db=Depends(get_db)):
    return services.update_user_status(db, user_id, payload.status)


@router.post("/admin/events", status_code=status.HTTP_201_CREATED)
def admin_create_event(payload: EventCreate, current=Depends(require_admin), db=Depends(get_db)):
    return services.create_event(db, payload)


@router.put("/admin/events/{event_id}")
def admin_update_event(event_id: str, payload: EventUpdate, current=Depends(require_admin), db=Depends(get_db)):
    return services.update_event(db, event_id, payload)


@router.put("/admin/matches/{match_id}/result")
def admin_match_result(match_id: str, payload: MatchResultUpdate, current=Depends(require_admin), db=Depends(get_db)):
    return services.record_match_result(db, match_id, payload)


def create_app(settings: Optional[Settings] = None, client: Optional[MongoClient] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db: Database = app.state.db
        os.makedirs(settings.upload_dir, exist_ok=True)
        db.ensure_indexes()
        services.bootstrap_admin(db, app.state.hasher, settings)
        logger.info("Wrist Titans API started on database %s", db.name)
        yield
        db.close()
        logger.info("Wrist Titans API shutting down")

    app = FastAPI(title="Wrist Titans API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = Database(settings, client)
    app.state.tokens = TokenService.from_settings(settings)
    app.state.hasher = PasswordHasher.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)
    app.include_router(router)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    @app.get("/")
    def root():
        return {"message": "Wrist Titans API running"}

    @app.get("/test")
    def test_database():
        db: Database = app.state.db
        response: Dict[str, Any] = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_name": db.name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
        except PyMongoError as e:
            response["database"] = f"⚠️ Error: {type(e).__name__}"
        return response

    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
