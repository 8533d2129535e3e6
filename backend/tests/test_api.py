def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.get_json() == {"ok": True, "rooms": {"drawguess": 0, "timeline": 0, "shed": 0}}


def test_create_list_and_get_room(client):
    res = client.post("/api/drawguess/rooms", json={"playerId": "p1", "name": "Alice", "roomName": "Fun"})
    assert res.status_code == 201
    body = res.get_json()
    room_id = body["roomId"]
    assert room_id.startswith("room_")
    assert body["room"]["hostId"] == "p1"
    assert body["room"]["name"] == "Fun"

    res = client.get("/api/drawguess/rooms")
    assert res.status_code == 200
    assert [r["id"] for r in res.get_json()["rooms"]] == [room_id]

    res = client.get(f"/api/drawguess/rooms/{room_id}")
    assert res.status_code == 200
    assert res.get_json()["state"] == "waiting"

    res = client.get("/api/health")
    assert res.get_json()["rooms"]["drawguess"] == 1


def test_room_ids_carry_game_prefix(client):
    res = client.post("/api/timeline/rooms", json={"playerId": "p1", "name": "Alice"})
    assert res.get_json()["roomId"].startswith("timeline_")
    res = client.post("/api/shed/rooms", json={"playerId": "p1", "name": "Alice", "settings": {"maxPlayers": 6}})
    assert res.get_json()["roomId"].startswith("shed_")
    assert res.get_json()["room"]["maxPlayers"] == 6


def test_invalid_payloads(client):
    res = client.post("/api/drawguess/rooms", json={"playerId": "p1", "name": "<b>Alice</b>"})
    assert res.status_code == 400
    assert res.get_json() == {"error": "invalid_payload"}

    res = client.post("/api/shed/rooms", json={"playerId": "bot_sneaky", "name": "Alice"})
    assert res.status_code == 400

    res = client.post("/api/shed/rooms", data="not json", content_type="text/plain")
    assert res.status_code == 400


def test_unknown_game_and_room(client):
    res = client.get("/api/chess/rooms")
    assert res.status_code == 404
    assert res.get_json() == {"error": "unknown_game"}

    res = client.get("/api/drawguess/rooms/room_missing")
    assert res.status_code == 404
    assert res.get_json() == {"error": "room_not_found"}

    res = client.get("/api/chess/leaderboard")
    assert res.status_code == 404


def test_room_state_is_public_only(client, flask_app):
    hub = flask_app.extensions["playroom"]
    room = hub.timeline.create_room("Quiz", "p1", "Alice")
    room.add_player("p2", "Bob")
    room.start_game("p1")

    body = client.get(f"/api/timeline/rooms/{room.id}?playerId=p1").get_json()
    assert set(body["currentSong"]) == {"id"}
    assert "timeline" not in body
    assert "timeline" not in client.get(f"/api/timeline/rooms/{room.id}").get_json()


def test_started_shed_tables_are_not_listed(client, flask_app):
    hub = flask_app.extensions["playroom"]
    room = hub.shed.create_room("Table", "p1", "Alice")
    room.add_player("p2", "Bob")
    room.start_game("p1")

    assert client.get("/api/shed/rooms").get_json() == {"rooms": []}
    for viewer in ("", "?playerId=p1", "?playerId=p2"):
        body = client.get(f"/api/shed/rooms/{room.id}{viewer}").get_json()
        assert all("hand" not in p for p in body["players"])
        assert [p["cardCount"] for p in body["players"]] == [7, 7]


def test_leaderboard(client, flask_app):
    res = client.get("/api/shed/leaderboard")
    assert res.status_code == 200
    assert res.get_json() == {"game": "shed", "leaderboard": []}

    flask_app.extensions["playroom"].shed.stats.record_game("p1", "Alice", won=True, cardsPlayed=7)
    board = client.get("/api/shed/leaderboard").get_json()["leaderboard"]
    assert board[0]["id"] == "p1"
    assert board[0]["displayName"] == "Alice"
    assert board[0]["winRate"] == 100


def test_words(client):
    res = client.get("/api/drawguess/words?count=2&difficulty=easy&language=nl")
    assert res.status_code == 200
    body = res.get_json()
    assert body["languages"] == ["en", "nl"]
    assert len(body["words"]) == 2
    assert set(body["words"]) <= {"kat", "hond", "huis", "boom", "zon", "vis", "auto", "appel", "bal", "maan"}

    res = client.get("/api/drawguess/words?count=oops")
    assert len(res.get_json()["words"]) == 3
