import asyncio
import random

import pytest

from stallmates.domain.common.errors import InvalidInput, NotFound, NotYourTurn, PermissionDenied, Stale
from stallmates.domain.games import engine, words
from stallmates.domain.games.models import GameStatus, LetterResult

EXACT = LetterResult.EXACT
PRESENT = LetterResult.PRESENT
ABSENT = LetterResult.ABSENT


@pytest.fixture
def fixed_word(monkeypatch):
    monkeypatch.setattr(words, "pick_word", lambda rng=None: "CRANE")


def test_score_guess_exact_then_present():
    assert engine.score_guess("FLUSH", "SLUSH") == [ABSENT, EXACT, EXACT, EXACT, EXACT]
    assert engine.score_guess("ROUND", "RURAL") == [EXACT, PRESENT, ABSENT, ABSENT, ABSENT]
    assert engine.score_guess("CRANE", "CRANE") == [EXACT] * 5


def test_score_guess_counts_duplicate_letters():
    # only one R in the secret: the exact R consumes it
    assert engine.score_guess("CRANE", "EERIE") == [ABSENT, ABSENT, PRESENT, ABSENT, EXACT]
    assert engine.score_guess("ABBEY", "BOBBY") == [PRESENT, ABSENT, EXACT, ABSENT, EXACT]


def test_normalise_guess():
    assert engine.normalise_guess(" crane ") == "CRANE"
    with pytest.raises(InvalidInput) as exc_info:
        engine.normalise_guess("CRAN")
    assert exc_info.value.reason == "invalid_length"
    with pytest.raises(InvalidInput) as exc_info:
        engine.normalise_guess("CR4NE")
    assert exc_info.value.reason == "invalid_letters"


def test_pick_word_comes_from_the_list():
    assert words.pick_word(random.Random(3)) in words.WORDS
    assert all(len(word) == 5 for word in words.WORDS)


@pytest.mark.asyncio
async def test_initialize_is_idempotent(fixed_word):
    first = await engine.initialize_game("wordle_1", "alice", "bob")
    second = await engine.initialize_game("wordle_1", "bob", "alice")
    assert first.word == second.word
    assert second.player1 == "alice"
    assert second.current_player == "alice"


@pytest.mark.asyncio
async def test_concurrent_initialize_agrees_on_one_document():
    results = await asyncio.gather(
        engine.initialize_game("wordle_2", "alice", "bob", rng=random.Random(1)),
        engine.initialize_game("wordle_2", "bob", "alice", rng=random.Random(2)),
    )
    assert results[0].word == results[1].word
    assert results[0].player1 == results[1].player1


@pytest.mark.asyncio
async def test_turns_alternate_until_a_correct_guess(fixed_word):
    await engine.initialize_game("wordle_3", "alice", "bob")

    state = await engine.submit_guess("wordle_3", "alice", "slate")
    assert state.current_player == "bob"
    assert state.player1_guesses == ["SLATE"]
    with pytest.raises(NotYourTurn):
        await engine.submit_guess("wordle_3", "alice", "train")

    state = await engine.submit_guess("wordle_3", "bob", "train")
    assert state.current_player == "alice"
    assert state.player2_guesses == ["TRAIN"]

    state = await engine.submit_guess("wordle_3", "alice", "crane")
    assert state.status is GameStatus.COMPLETED
    assert state.winner == "alice"

    with pytest.raises(Stale):
        await engine.submit_guess("wordle_3", "bob", "crane")
    final = await engine.require_game("wordle_3")
    assert final.player2_guesses == ["TRAIN"]
    assert final.winner == "alice"


@pytest.mark.asyncio
async def test_submit_guess_errors(fixed_word):
    with pytest.raises(NotFound):
        await engine.submit_guess("missing", "alice", "crane")
    await engine.initialize_game("wordle_4", "alice", "bob")
    with pytest.raises(PermissionDenied):
        await engine.submit_guess("wordle_4", "mallory", "crane")
    with pytest.raises(InvalidInput):
        await engine.submit_guess("wordle_4", "alice", "cranes")


@pytest.mark.asyncio
async def test_turn_is_checked_before_guess_length(fixed_word):
    await engine.initialize_game("wordle_7", "alice", "bob")
    with pytest.raises(NotYourTurn):
        await engine.submit_guess("wordle_7", "bob", "AB")
    with pytest.raises(PermissionDenied):
        await engine.submit_guess("wordle_7", "mallory", "AB")
    state = await engine.require_game("wordle_7")
    assert state.player2_guesses == []


@pytest.mark.asyncio
async def test_double_submit_applies_once(fixed_word):
    await engine.initialize_game("wordle_5", "alice", "bob")
    results = await asyncio.gather(
        engine.submit_guess("wordle_5", "alice", "slate"),
        engine.submit_guess("wordle_5", "alice", "slate"),
        return_exceptions=True,
    )
    failures = [item for item in results if isinstance(item, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], (NotYourTurn, Stale))
    state = await engine.require_game("wordle_5")
    assert state.player1_guesses == ["SLATE"]


@pytest.mark.asyncio
async def test_game_view_hides_word_until_completed(fixed_word):
    state = await engine.initialize_game("wordle_6", "alice", "bob")
    view = engine.game_view(state, "alice")
    assert view["word"] is None
    assert view["your_turn"] is True
    assert engine.game_view(state, "bob")["your_turn"] is False

    state = await engine.submit_guess("wordle_6", "alice", "eerie")
    view = engine.game_view(state, "bob")
    assert view["player1_guesses"][0]["feedback"] == ["absent", "absent", "present", "absent", "exact"]

    await engine.submit_guess("wordle_6", "bob", "slate")
    state = await engine.submit_guess("wordle_6", "alice", "crane")
    view = engine.game_view(state, "bob")
    assert view["word"] == "CRANE"
    assert view["your_turn"] is False
