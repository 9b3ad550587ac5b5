from datetime import timedelta

from bson import ObjectId

from conftest import auth, create_event, future, past, register
from schemas import Match, utcnow


def _challenge(client, token, opponent_id=None, **fields):
    body = {"weightClass": "welter", "date": future(3), "venue": "Gym 4"}
    if opponent_id is not None:
        body["opponentId"] = opponent_id
    body.update(fields)
    return client.post("/api/matches/challenge", json=body, headers=auth(token))


def test_challenge_creates_match_and_updates_challenger_only(client, db, player, opponent):
    resp = _challenge(client, player["token"], opponent["id"])

    assert resp.status_code == 201, resp.text
    match = resp.json()["match"]
    assert match["challenger"] == player["id"]
    assert match["opponent"] == opponent["id"]
    assert match["status"] == "pending"
    challenger = db["user"].find_one({"_id": ObjectId(player["id"])})
    other = db["user"].find_one({"_id": ObjectId(opponent["id"])})
    assert challenger["matches"] == [ObjectId(match["id"])]
    assert other["matches"] == []


def test_challenge_without_opponent(client, player):
    resp = _challenge(client, player["token"])
    assert resp.status_code == 201, resp.text
    assert resp.json()["match"]["opponent"] is None


def test_challenge_unknown_opponent_is_not_found(client, player):
    assert _challenge(client, player["token"], str(ObjectId())).status_code == 404
    assert _challenge(client, player["token"], "not-an-id").status_code == 404


def test_challenge_self_is_rejected(client, player):
    assert _challenge(client, player["token"], player["id"]).status_code == 422


def test_challenge_requires_weight_class_and_date(client, player):
    resp = client.post("/api/matches/challenge", json={"venue": "x"}, headers=auth(player["token"]))
    assert resp.status_code == 422


def test_profile_resolves_references(client, admin, player, opponent):
    match = _challenge(client, player["token"], opponent["id"]).json()["match"]
    event = create_event(client, admin["token"])
    client.post(f"/api/events/register/{event['id']}", headers=auth(player["token"]))

    resp = client.get("/api/users/profile", headers=auth(player["token"]))

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert "password" not in body
    assert [m["id"] for m in body["matches"]] == [match["id"]]
    assert body["matches"][0]["weightClass"] == "welter"
    assert [e["id"] for e in body["events"]] == [event["id"]]
    assert body["events"][0]["title"] == "City Open"


def test_dashboard_scenario(client):
    a = register(client, name="A", email="a@x.com", password="secret1").json()
    b = register(client, name="B").json()
    login = client.post("/api/auth/login", json={"email": "a@x.com", "password": "secret1"})
    assert login.status_code == 200
    token = login.json()["token"]

    created = _challenge(client, token, b["user"]["id"], weightClass="welter").json()["match"]
    resp = client.get("/api/users/dashboard", headers=auth(token))

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["stats"]["totalMatches"] == 1
    assert body["stats"]["wins"] == 0
    assert [m["id"] for m in body["matches"]] == [created["id"]]
    assert body["matches"][0]["challenger"] == {"id": a["user"]["id"], "name": "A"}
    assert body["matches"][0]["opponent"] == {"id": b["user"]["id"], "name": "B"}
    assert "password" not in body["user"]


def test_dashboard_stats(client, db, admin, player, opponent):
    me = ObjectId(player["id"])
    other = ObjectId(opponent["id"])
    now = utcnow()
    results = [("win", me), ("win", me), ("win", other), ("loss", other), ("draw", None)]
    for i, (result, winner) in enumerate(results):
        db.create_match(
            Match(
                challenger=me if i % 2 == 0 else other,
                opponent=other if i % 2 == 0 else me,
                weightClass="welter",
                date=now + timedelta(days=i),
                result=result,
                winner=winner,
            )
        )
    # a win recorded with the wrong winner does not count
    db.create_match(Match(challenger=me, weightClass="welter", date=now, result="win"))
    create_event(client, admin["token"], date=future(5))
    create_event(client, admin["token"], date=future(1))
    create_event(client, admin["token"], date=past(1))

    body = client.get("/api/users/dashboard", headers=auth(player["token"])).json()

    assert body["stats"] == {"totalMatches": 6, "wins": 2, "upcomingEvents": 2}
    dates = [m["date"] for m in body["matches"]]
    assert dates == sorted(dates, reverse=True)
    event_dates = [e["date"] for e in body["events"]]
    assert event_dates == sorted(event_dates)


def test_dashboard_announcements_are_latest_five_upcoming(client, admin, player):
    for i in range(6):
        create_event(client, admin["token"], title=f"Event {i}")
    create_event(client, admin["token"], title="Done", status="completed")

    body = client.get("/api/users/dashboard", headers=auth(player["token"])).json()

    titles = [e["title"] for e in body["announcements"]]
    assert len(titles) == 5
    assert "Done" not in titles
