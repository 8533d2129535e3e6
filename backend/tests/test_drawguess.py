import random

import pytest

from playroom.core.content import WordPool
from playroom.games.drawguess.leaderboard import DrawGuessStats
from playroom.games.drawguess.rules import (
    blank_hint,
    calculate_guesser_score,
    check_guess,
    render_hint,
    reveal_target,
)
from playroom.games.drawguess.session import DrawGuessManager

WORDS = {"en": {"easy": ["house", "tree", "boat"]}}


@pytest.fixture()
def manager(scheduler, recorder, tmp_path):
    stats = DrawGuessStats(tmp_path / "drawguess_leaderboard.json", scheduler, debounce_sec=0)
    return DrawGuessManager(scheduler, stats, WordPool(WORDS), broadcast=recorder, rng=random.Random(7))


def make_room(manager, *others, **settings):
    room = manager.create_room("Test", "a", "Alice", settings=settings)
    for player_id, name in others:
        assert room.add_player(player_id, name)["success"]
    return room


def started(manager, *others, **settings):
    room = make_room(manager, *others, **settings)
    assert room.start_game("a")["success"]
    return room


def test_round_flow(manager, scheduler, recorder):
    room = started(manager, ("b", "Bob"))
    assert room.state == "choosing"

    choose = recorder.last("game:chooseWord")
    assert choose.to == "a"
    assert sorted(choose.payload["words"]) == ["boat", "house", "tree"]
    assert room.select_word("b", "house")["error"] == "Only the drawer can choose the word"
    assert room.select_word("a", "castle")["error"] == "Word not offered"
    assert room.select_word("a", "house")["success"]

    start = recorder.last("game:roundStart")
    assert start.to is None
    assert start.payload["hint"] == "_____"
    assert "word" not in start.payload
    assert recorder.last("game:yourTurn").to == "a"
    assert recorder.last("game:yourTurn").payload["word"] == "house"

    scheduler.advance(10)
    result = room.handle_guess("b", "  HOUSE ")
    assert result == {"success": True, "correct": True, "close": False, "score": 500}
    assert room.players["b"].score == 500
    assert room.players["a"].score == 25

    end = recorder.last("game:roundEnd")
    assert end.payload["word"] == "house"
    assert end.payload["correctGuessers"][0]["timeElapsed"] == 10
    assert room.state == "between_rounds"

    scheduler.advance(4.9)
    assert room.state == "between_rounds"
    scheduler.advance(0.2)
    assert room.state == "choosing"
    assert room.current_drawer().id == "b"
    assert recorder.last("game:choosing").payload["drawerId"] == "b"
    assert recorder.events("game:hint") == []


def test_full_single_round_game(manager, scheduler, recorder):
    room = started(manager, ("b", "Bob"), rounds=1)
    room.select_word("a", "house")
    scheduler.advance(10)
    room.handle_guess("b", "house")

    scheduler.advance(5)
    assert room.current_drawer().id == "b"
    word = room.word_choices[0]
    assert len(set(room.word_choices)) == 3
    room.select_word("b", word)
    assert room.handle_guess("a", word)["score"] == 550

    assert room.players["a"].score == 575
    assert room.players["b"].score == 525
    scheduler.advance(3)
    assert room.state == "ended"

    end = recorder.last("game:end")
    assert end.payload["winner"]["id"] == "a"
    assert [p["id"] for p in end.payload["finalScores"]] == ["a", "b"]

    record = manager.stats.get("a")
    assert record["gamesWon"] == 1
    assert record["totalPoints"] == 575
    assert record["correctGuesses"] == 1
    assert record["roundsDrawn"] == 1
    assert record["successfulDrawings"] == 1
    assert manager.stats.get("b")["gamesWon"] == 0

    scheduler.advance(10)
    assert room.state == "waiting"
    assert all(p.score == 0 for p in room.players.values())
    assert recorder.last("room:reset") is not None


def test_hints_grow_until_timeout(manager, scheduler, recorder):
    room = started(manager, ("b", "Bob"))
    room.select_word("a", "house")

    shown = set()
    for expected in (4, 3, 2):
        scheduler.advance(20)
        hint = recorder.last("game:hint").payload["hint"]
        assert hint.count("_") == expected
        assert room.state == "playing"

        # Letters stay revealed once shown.
        now_shown = {i for i, ch in enumerate(hint) if ch != "_"}
        assert now_shown >= shown
        assert now_shown == set(room.revealed)
        assert all(hint[i] == "house"[i] for i in now_shown)
        shown = now_shown

    scheduler.advance(20)
    assert room.state == "between_rounds"
    assert recorder.last("game:roundEnd").payload["correctGuessers"] == []
    assert len(recorder.events("game:hint")) == 3


def test_close_guess_is_private(manager, recorder):
    room = started(manager, ("b", "Bob"))
    room.select_word("a", "house")

    assert room.handle_guess("b", "houze") == {"success": True, "correct": False, "close": True}
    close = recorder.last("game:closeGuess")
    assert close.to == "b"
    assert room.handle_guess("b", "zebra") == {"success": True, "correct": False, "close": False}
    assert room.handle_guess("a", "house")["error"] == "Drawer cannot guess"
    assert room.players["b"].score == 0


def test_guess_rejections(manager):
    room = started(manager, ("b", "Bob"), ("c", "Cara"))
    assert room.handle_guess("b", "house")["error"] == "No round in progress"
    room.select_word("a", "house")
    room.handle_guess("b", "house")
    assert room.handle_guess("b", "house")["error"] == "Already guessed correctly"
    assert room.handle_guess("x", "house")["error"] == "Player not in room"
    assert room.state == "playing"


def test_drawing_permissions_and_history(manager, recorder):
    room = started(manager, ("b", "Bob"))
    assert room.add_stroke("a", {"points": []})["error"] == "Not drawing right now"
    room.select_word("a", "house")
    assert room.add_stroke("b", {"points": []})["error"] == "Only the drawer can draw"
    assert room.add_stroke("a", "junk")["error"] == "Invalid stroke"

    for i in range(55):
        room.add_stroke("a", {"n": i})
    history = room.get_draw_state()["history"]
    assert len(history) == 50
    assert history[0] == {"n": 5}
    assert recorder.last("draw:stroke").exclude_id == "a"

    assert room.undo("a")["stroke"] == {"n": 54}
    assert room.redo("a")["stroke"] == {"n": 54}
    assert room.redo("a")["error"] == "Nothing to redo"
    room.undo("a")
    room.fill("a", 10, 20, "#ff0000")
    assert room.redo("a")["error"] == "Nothing to redo"
    assert room.get_draw_state()["history"][-1]["type"] == "fill"

    room.clear_canvas("a")
    assert room.get_draw_state() == {"history": []}
    assert room.undo("a")["error"] == "Nothing to undo"


def test_state_hides_word_from_guessers(manager):
    room = started(manager, ("b", "Bob"))
    assert sorted(room.get_state("a")["wordChoices"]) == ["boat", "house", "tree"]
    assert "wordChoices" not in room.get_state("b")

    room.select_word("a", "house")
    assert room.get_state("a")["word"] == "house"
    guesser_view = room.get_state("b")
    assert "word" not in guesser_view
    assert guesser_view["hint"] == "_____"
    assert guesser_view["drawerId"] == "a"


def test_word_choice_times_out(manager, scheduler):
    room = started(manager, ("b", "Bob"))
    offered = list(room.word_choices)
    scheduler.advance(10)
    assert room.state == "playing"
    assert room.current_word == offered[0]


def test_late_joiner_spectates_and_is_promoted(manager, scheduler):
    room = started(manager, ("b", "Bob"), maxPlayers=2)
    result = room.add_player("c", "Cara")
    assert result == {"success": True, "asSpectator": True}
    assert room.handle_guess("c", "house")["error"] == "Spectators cannot guess"
    assert room.promote_spectator("a", "c")["error"] == "Spectators can only be promoted between games"

    scheduler.run_all()
    assert room.state == "waiting"
    assert "c" in room.spectators

    assert room.promote_spectator("a", "c")["error"] == "Room is full"
    room.remove_player("b")
    assert room.promote_spectator("b", "c")["error"] == "Only the host can promote spectators"
    assert room.promote_spectator("a", "c")["success"]
    assert "c" in room.players
    assert room.players["c"].is_spectator is False


def test_room_full(manager):
    room = make_room(manager, ("b", "Bob"), maxPlayers=2)
    assert room.add_player("c", "Cara") == {"success": False, "error": "Room is full"}


def test_drawer_leaving_ends_round(manager, scheduler, recorder):
    room = started(manager, ("b", "Bob"), ("c", "Cara"))
    room.select_word("a", "house")
    room.remove_player("a")

    end = recorder.last("game:roundEnd")
    assert end.payload["drawerLeft"] is True
    assert room.host_id == "b"
    assert recorder.last("room:newHost").payload == {"hostId": "b"}

    scheduler.advance(5)
    assert room.current_drawer().id == "b"


def test_drawer_disconnect_ends_round(manager, scheduler):
    room = started(manager, ("b", "Bob"), ("c", "Cara"))
    room.select_word("a", "house")
    room.disconnect_player("a")

    assert room.state == "between_rounds"
    assert room.players["a"].connected is False
    scheduler.advance(5)
    assert room.current_drawer().id == "b"


def test_disconnected_drawer_is_skipped(manager, scheduler):
    room = started(manager, ("b", "Bob"), ("c", "Cara"))
    room.select_word("a", "house")
    room.disconnect_player("b")
    room.handle_guess("c", "house")
    assert room.state == "between_rounds"

    scheduler.advance(5)
    assert room.current_drawer().id == "c"


def test_removal_keeps_rotation(manager, scheduler):
    room = started(manager, ("b", "Bob"), ("c", "Cara"))
    room.select_word("a", "house")
    room.handle_guess("b", "house")
    room.handle_guess("c", "house")
    assert room.state == "between_rounds"

    room.remove_player("a")
    scheduler.advance(5)
    assert room.current_drawer().id == "b"


def test_everyone_leaving(manager):
    room = started(manager, ("b", "Bob"))
    room.disconnect_player("a")
    room.disconnect_player("b")
    assert room.state == "ended"
    assert room.end_reason == "All players left"

    room = started(manager, ("b", "Bob"))
    room.select_word("a", "house")
    room.remove_player("b")
    assert room.state == "ended"
    assert room.end_reason == "Not enough players"


def test_game_ends_when_too_few_are_connected(manager, scheduler):
    room = started(manager, ("b", "Bob"))
    room.select_word("a", "house")
    room.disconnect_player("b")
    assert room.state == "playing"

    scheduler.advance(80)
    assert room.state == "between_rounds"
    scheduler.advance(5)
    assert room.state == "ended"
    assert room.end_reason == "Not enough players"


def test_disconnect_while_waiting_is_a_leave(manager):
    room = make_room(manager, ("b", "Bob"))
    room.disconnect_player("b")
    assert "b" not in room.players


def test_start_and_settings_rules(manager, recorder):
    room = make_room(manager)
    assert room.start_game("a")["error"] == "Need at least 2 players"
    room.add_player("b", "Bob")
    assert room.start_game("b")["error"] == "Only the host can start the game"

    assert room.update_settings("b", {"rounds": 5})["error"] == "Only the host can change settings"
    result = room.update_settings("a", {"rounds": 5, "maxPlayers": 99, "roundTime": 60})
    assert result["changed"] == ["rounds", "roundTime"]
    assert recorder.last("room:settings").payload["settings"]["rounds"] == 5

    room.start_game("a")
    assert room.start_game("a")["error"] == "Game already in progress"
    assert room.update_settings("a", {"rounds": 2})["error"] == "Settings are locked during a game"


def test_guess_checking():
    assert check_guess("  House ", "house") == (True, False)
    assert check_guess("houze", "house") == (False, True)
    assert check_guess("hous", "house") == (False, True)
    assert check_guess("ho", "hou") == (False, False)
    assert check_guess("zebra", "house") == (False, False)


def test_scoring_and_hints():
    assert calculate_guesser_score(0, True) == 550
    assert calculate_guesser_score(10, False) == 450
    assert calculate_guesser_score(100, False) == 100
    assert calculate_guesser_score(100, True) == 150

    assert blank_hint("ice cream") == "___ _____"
    assert render_hint("ice cream", {0, 4}) == "i__ c____"
    assert reveal_target("house", 1) == 1
    assert reveal_target("house", 3) == 3
    assert reveal_target("ab", 5) == 1


def test_deleted_room_stops_its_timers(manager, scheduler, recorder):
    room = started(manager, ("b", "Bob"))
    assert manager.delete_room(room.id) is True
    assert manager.get_room(room.id) is None

    scheduler.advance(10)
    assert room.state == "choosing"
    assert recorder.events("game:roundStart") == []
