def _names(packets):
    return [p.get("name") for p in packets]


def _last(packets, name):
    matches = [p for p in packets if p.get("name") == name]
    assert matches, f"no {name} packet in {_names(packets)}"
    return matches[-1]["args"][0]


def _drawguess_room(make_sio_client):
    alice = make_sio_client()
    bob = make_sio_client()
    ack = alice.emit("drawguess:create", {"playerId": "p-a", "name": "Alice"}, callback=True)
    assert ack["ok"] is True
    room_id = ack["roomId"]

    ack = bob.emit("drawguess:join", {"roomId": room_id, "playerId": "p-b", "name": "Bob"}, callback=True)
    assert ack["ok"] is True
    assert ack["state"]["playerCount"] == 2
    return alice, bob, room_id


def test_connect(sio_client):
    assert sio_client.is_connected()


def test_create_join_and_start(make_sio_client):
    alice, bob, room_id = _drawguess_room(make_sio_client)
    assert "room:playerJoined" in _names(alice.get_received())
    assert "draw:sync" in _names(bob.get_received())

    ack = alice.emit("drawguess:start", {"roomId": room_id}, callback=True)
    assert ack["ok"] is True

    alice_packets = alice.get_received()
    bob_packets = bob.get_received()
    assert "game:choosing" in _names(alice_packets)
    assert "game:choosing" in _names(bob_packets)
    assert "game:chooseWord" in _names(alice_packets)
    assert "game:chooseWord" not in _names(bob_packets)

    choosing = _last(bob_packets, "game:choosing")
    assert choosing["game"] == "drawguess"
    assert choosing["roomId"] == room_id
    assert "wordChoices" not in _last(bob_packets, "drawguess:state")
    assert len(_last(alice_packets, "drawguess:state")["wordChoices"]) == 3


def test_wrong_guess_goes_to_chat(make_sio_client):
    alice, bob, room_id = _drawguess_room(make_sio_client)
    alice.emit("drawguess:start", {"roomId": room_id}, callback=True)
    words = _last(alice.get_received(), "game:chooseWord")["words"]
    bob.get_received()

    ack = alice.emit("drawguess:select_word", {"roomId": room_id, "word": words[0]}, callback=True)
    assert ack["ok"] is True
    assert "game:yourTurn" in _names(alice.get_received())
    assert "game:yourTurn" not in _names(bob.get_received())

    ack = bob.emit("drawguess:guess", {"roomId": room_id, "text": "zzzzzzzzzzzzzzzz"}, callback=True)
    assert ack == {"ok": True, "success": True, "correct": False, "close": False}
    chat = _last(alice.get_received(), "chat:message")
    assert chat["from"] == "p-b"
    assert chat["text"] == "zzzzzzzzzzzzzzzz"


def test_actions_use_the_bound_player(make_sio_client):
    alice, bob, room_id = _drawguess_room(make_sio_client)
    alice.emit("drawguess:start", {"roomId": room_id}, callback=True)
    words = _last(alice.get_received(), "game:chooseWord")["words"]
    bob.get_received()

    # Claiming another player id in the payload changes nothing.
    ack = bob.emit("drawguess:select_word", {"roomId": room_id, "word": words[0], "playerId": "p-a"}, callback=True)
    assert ack["ok"] is False
    assert ack["error"] == "Only the drawer can choose the word"
    error = _last(bob.get_received(), "drawguess:error")
    assert error == {"error": "Only the drawer can choose the word", "action": "select_word"}


def test_unjoined_and_unknown_rooms(make_sio_client):
    stranger = make_sio_client()
    ack = stranger.emit("shed:play", {"roomId": "shed_1_abc", "cardId": "5_hearts"}, callback=True)
    assert ack == {"ok": False, "success": False, "error": "not_joined"}
    assert _last(stranger.get_received(), "shed:error") == {"error": "not_joined"}

    ack = stranger.emit("shed:draw", {}, callback=True)
    assert ack["error"] == "invalid_room"

    ack = stranger.emit("timeline:join", {"roomId": "timeline_1_abc", "playerId": "p-x", "name": "X"}, callback=True)
    assert ack["error"] == "room_not_found"

    ack = stranger.emit("timeline:create", {"playerId": "p-x", "name": ""}, callback=True)
    assert ack["error"] == "invalid_payload"


def test_not_in_room(make_sio_client):
    alice, _bob, room_id = _drawguess_room(make_sio_client)
    other = make_sio_client()
    ack = other.emit("shed:create", {"playerId": "p-c", "name": "Cara"}, callback=True)
    assert ack["ok"] is True

    ack = other.emit("drawguess:start", {"roomId": room_id}, callback=True)
    assert ack["error"] == "not_in_room"


def test_shed_bot_table(make_sio_client):
    alice = make_sio_client()
    ack = alice.emit("shed:create", {"playerId": "p-a", "name": "Alice"}, callback=True)
    room_id = ack["roomId"]

    ack = alice.emit("shed:add_bot", {"roomId": room_id}, callback=True)
    assert ack["ok"] is True
    assert ack["botId"].startswith("bot_")

    alice.get_received()
    ack = alice.emit("shed:start", {"roomId": room_id}, callback=True)
    assert ack["ok"] is True

    packets = alice.get_received()
    assert "game:started" in _names(packets)
    state = _last(packets, "shed:state")
    me, bot = state["players"]
    assert len(me["hand"]) == 7
    assert "hand" not in bot
    assert bot["isBot"] is True


def test_timeline_sync(make_sio_client):
    alice = make_sio_client()
    bob = make_sio_client()
    room_id = alice.emit("timeline:create", {"playerId": "p-a", "name": "Alice"}, callback=True)["roomId"]
    bob.emit("timeline:join", {"roomId": room_id, "playerId": "p-b", "name": "Bob"}, callback=True)
    alice.emit("timeline:start", {"roomId": room_id}, callback=True)

    ack = bob.emit("timeline:sync", {"roomId": room_id}, callback=True)
    assert ack["ok"] is True
    assert ack["state"]["state"] == "playing"
    assert set(ack["state"]["currentSong"]) == {"id"}


def test_disconnect_while_waiting_leaves_room(make_sio_client, flask_app):
    alice, bob, room_id = _drawguess_room(make_sio_client)
    bob.disconnect()

    room = flask_app.extensions["playroom"].drawguess.get_room(room_id)
    assert list(room.players) == ["p-a"]
    assert "room:playerLeft" in _names(alice.get_received())


def test_disconnect_mid_game_keeps_seat(make_sio_client, flask_app):
    alice, bob, room_id = _drawguess_room(make_sio_client)
    alice.emit("drawguess:start", {"roomId": room_id}, callback=True)
    bob.disconnect()

    room = flask_app.extensions["playroom"].drawguess.get_room(room_id)
    assert room.players["p-b"].connected is False


def test_timeline_has_no_placement_preview(make_sio_client, flask_app):
    alice = make_sio_client()
    bob = make_sio_client()
    room_id = alice.emit("timeline:create", {"playerId": "p-a", "name": "Alice"}, callback=True)["roomId"]
    bob.emit("timeline:join", {"roomId": room_id, "playerId": "p-b", "name": "Bob"}, callback=True)
    alice.emit("timeline:start", {"roomId": room_id}, callback=True)
    room = flask_app.extensions["playroom"].timeline.get_room(room_id)
    current = room.current_player()
    client = alice if current.id == "p-a" else bob
    client.get_received()

    ack = client.emit("timeline:check", {"roomId": room_id, "position": 0}, callback=True)
    assert not ack
    assert client.get_received() == []
    assert room.turn_phase == "listening"
