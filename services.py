"""
Domain handlers behind the HTTP routes.

Callers are authenticated and role-checked by the guards in `auth` before any
of these run; handlers only orchestrate the hasher, token service and gateway.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List

from config import Settings
from database import EVENTS, MATCHES, USERS, Database, sanitize_user, serialize, to_object_id
from errors import Conflict, InvalidCredentials, ValidationError
from schemas import (
    ChallengePayload,
    Event,
    EventCreate,
    EventUpdate,
    LoginPayload,
    Match,
    MatchResultUpdate,
    RegisterPayload,
    User,
)
from security import PasswordHasher, TokenService

logger = logging.getLogger(__name__)

ANNOUNCEMENT_LIMIT = 5


# Auth
def register_user(db: Database, hasher: PasswordHasher, tokens: TokenService, payload: RegisterPayload) -> Dict[str, Any]:
    if db.find_user_by_email(payload.email):
        raise Conflict("User already exists")
    user = User(
        name=payload.name,
        email=payload.email,
        password=hasher.hash(payload.password),
        phone=payload.phone,
        weight=payload.weight,
        experience=payload.experience,
        city=payload.city,
    )
    doc = db.create_user(user)
    logger.info("Registered user %s", doc["_id"])
    return {
        "message": "Registration successful",
        "token": tokens.issue(str(doc["_id"])),
        "user": sanitize_user(doc),
    }


def login_user(db: Database, hasher: PasswordHasher, tokens: TokenService, payload: LoginPayload) -> Dict[str, Any]:
    user = db.find_user_by_email(payload.email)
    if user is None:
        hasher.dummy_verify()
        logger.info("Failed login for %s", payload.email)
        raise InvalidCredentials()
    if not hasher.verify(payload.password, user.get("password")):
        logger.info("Failed login for %s", payload.email)
        raise InvalidCredentials()
    logger.info("User %s logged in", user["_id"])
    return {
        "message": "Login successful",
        "token": tokens.issue(str(user["_id"])),
        "user": sanitize_user(user),
    }


# Users
def get_profile(db: Database, current: Dict[str, Any]) -> Dict[str, Any]:
    user = db.find_user_by_id(current["_id"])
    user["matches"] = db.get_by_ids(MATCHES, user.get("matches", []))
    user["events"] = db.get_by_ids(EVENTS, user.get("events", []))
    return sanitize_user(user)


def _with_participant_names(db: Database, matches: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ids = {m[f] for m in matches for f in ("challenger", "opponent") if m.get(f) is not None}
    names = {u["_id"]: u.get("name") for u in db.get_by_ids(USERS, ids)}
    for match in matches:
        for field in ("challenger", "opponent"):
            ref = match.get(field)
            if ref is not None:
                match[field] = {"_id": ref, "name": names.get(ref)}
    return matches


def get_dashboard(db: Database, current: Dict[str, Any]) -> Dict[str, Any]:
    user_id = current["_id"]
    with ThreadPoolExecutor(max_workers=4) as executor:
        user_f = executor.submit(db.find_user_by_id, user_id)
        matches_f = executor.submit(db.find_matches_for_user, user_id)
        events_f = executor.submit(db.find_upcoming_events)
        announcements_f = executor.submit(db.find_announcements, ANNOUNCEMENT_LIMIT)
        user = user_f.result()
        matches = matches_f.result()
        events = events_f.result()
        announcements = announcements_f.result()

    wins = sum(1 for m in matches if m.get("result") == "win" and m.get("winner") == user_id)
    stats = {
        "totalMatches": len(matches),
        "wins": wins,
        "upcomingEvents": len(events),
    }
    return {
        "user": sanitize_user(user),
        "matches": serialize(_with_participant_names(db, matches)),
        "events": serialize(events),
        "announcements": serialize(announcements),
        "stats": stats,
    }


# Matches
def challenge_player(db: Database, current: Dict[str, Any], payload: ChallengePayload) -> Dict[str, Any]:
    """
    Record a challenge from the caller. Only the challenger's match list is
    updated; the opponent sees the match through their dashboard query.
    """
    opponent_id = None
    if payload.opponentId:
        opponent = db.find_user_by_id(payload.opponentId)
        opponent_id = opponent["_id"]
        if opponent_id == current["_id"]:
            raise ValidationError("You cannot challenge yourself")
    match = Match(
        challenger=current["_id"],
        opponent=opponent_id,
        weightClass=payload.weightClass,
        date=payload.date,
        venue=payload.venue,
    )
    doc = db.create_match(match)
    db.append_reference(USERS, current["_id"], "matches", doc["_id"])
    logger.info("User %s challenged %s in %s", current["_id"], opponent_id, payload.weightClass)
    return {"message": "Challenge sent successfully", "match": serialize(doc)}


def record_match_result(db: Database, match_id: str, payload: MatchResultUpdate) -> Dict[str, Any]:
    match = db.find_match_by_id(match_id)
    fields: Dict[str, Any] = {"result": payload.result, "status": payload.status}
    if payload.winner is not None:
        winner = to_object_id(payload.winner)
        if winner is None or winner not in (match.get("challenger"), match.get("opponent")):
            raise ValidationError("Winner must be the challenger or the opponent")
        fields["winner"] = winner
    if payload.referee is not None:
        fields["referee"] = payload.referee
    doc = db.update_match(match["_id"], fields)
    logger.info("Recorded result %s for match %s", payload.result, match["_id"])
    return serialize(doc)


# Events
def list_events(db: Database) -> List[Dict[str, Any]]:
    return serialize(db.list_events())


def register_for_event(db: Database, current: Dict[str, Any], event_id: str) -> Dict[str, Any]:
    """
    Add the caller to an event and the event to the caller.

    The participant append is conditional, so a duplicate registration gets
    Conflict even under concurrent requests. The user-side write is an
    idempotent add and is replayed on Conflict, so retrying after a failure
    between the two writes brings the user's event list back in line.
    """
    try:
        event = db.add_participant(event_id, current["_id"])
    except Conflict:
        db.append_reference(USERS, current["_id"], "events", to_object_id(event_id))
        raise
    db.append_reference(USERS, current["_id"], "events", event["_id"])
    logger.info("User %s registered for event %s", current["_id"], event["_id"])
    return {"message": "Registration successful", "event": serialize(event)}


# Admin
def list_users(db: Database) -> List[Dict[str, Any]]:
    return [sanitize_user(u) for u in db.list_users()]


def update_user_status(db: Database, user_id: str, status: str) -> Dict[str, Any]:
    doc = db.update_user(user_id, {"status": status})
    logger.info("User %s status set to %s", doc["_id"], status)
    return sanitize_user(doc)


def create_event(db: Database, payload: EventCreate) -> Dict[str, Any]:
    doc = db.create_event(Event(**payload.model_dump()))
    logger.info("Created event %s", doc["_id"])
    return {"message": "Event created successfully", "event": serialize(doc)}


def update_event(db: Database, event_id: str, payload: EventUpdate) -> Dict[str, Any]:
    fields = payload.model_dump(exclude_unset=True)
    for key in ("title", "description", "date", "venue", "status"):
        if key in fields and fields[key] is None:
            raise ValidationError(f"{key} cannot be null")
    if not fields:
        return serialize(db.find_event_by_id(event_id))
    doc = db.update_event(event_id, fields)
    logger.info("Updated event %s", doc["_id"])
    return serialize(doc)


def bootstrap_admin(db: Database, hasher: PasswordHasher, settings: Settings) -> None:
    if not (settings.admin_email and settings.admin_password):
        return
    if db.find_user_by_email(settings.admin_email):
        return
    admin = User(
        name=settings.admin_name,
        email=settings.admin_email,
        password=hasher.hash(settings.admin_password),
        phone="",
        role="admin",
        status="approved",
    )
    doc = db.create_user(admin)
    logger.info("Created bootstrap admin %s", doc["_id"])
