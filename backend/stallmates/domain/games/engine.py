"""Turn-based word-guessing engine.

The game document is created lazily by whichever player first finds it
missing. Creation is create-if-absent, so the second caller reads back the
first caller's word. Guesses are applied with an expected version, so a
double submit cannot apply twice.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional

from stallmates.domain.common import clock
from stallmates.domain.common.errors import InvalidInput, NotFound, NotYourTurn, PermissionDenied, Stale
from stallmates.domain.games import sockets, words
from stallmates.domain.games.models import GAMES, WORD_LENGTH, GameState, GameStatus, LetterResult
from stallmates.infra.documents import DocumentExists, WriteConflict, get_store
from stallmates.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

MAX_SUBMIT_ATTEMPTS = 2


def normalise_guess(guess: str) -> str:
	value = (guess or "").strip().upper()
	if len(value) != WORD_LENGTH:
		raise InvalidInput("invalid_length")
	if not (value.isascii() and value.isalpha()):
		raise InvalidInput("invalid_letters")
	return value


def score_guess(secret: str, guess: str) -> List[LetterResult]:
	"""Per-letter feedback: exact pass first, then present pass on leftovers."""
	secret = secret.upper()
	guess = guess.upper()
	result = [LetterResult.ABSENT] * len(guess)
	remaining: Dict[str, int] = {}
	for idx, letter in enumerate(secret):
		if idx < len(guess) and guess[idx] == letter:
			result[idx] = LetterResult.EXACT
		else:
			remaining[letter] = remaining.get(letter, 0) + 1
	for idx, letter in enumerate(guess):
		if result[idx] is LetterResult.EXACT:
			continue
		if remaining.get(letter, 0) > 0:
			result[idx] = LetterResult.PRESENT
			remaining[letter] -= 1
	return result


async def get_game(game_id: str) -> Optional[GameState]:
	doc = await get_store().get(GAMES, game_id)
	return GameState.from_document(doc) if doc else None


async def require_game(game_id: str) -> GameState:
	state = await get_game(game_id)
	if state is None:
		raise NotFound("game_missing")
	return state


async def initialize_game(
	game_id: str,
	player_id: str,
	opponent_id: str,
	*,
	rng: Optional[random.Random] = None,
) -> GameState:
	"""Return the game, creating it with ``player_id`` to move if it is missing."""
	existing = await get_game(game_id)
	if existing is not None:
		return existing
	state = GameState(
		id=game_id,
		word=words.pick_word(rng),
		player1=player_id,
		player2=opponent_id,
		current_player=player_id,
		created_at=clock.now_ts(),
	)
	try:
		doc = await get_store().create(GAMES, game_id, state.to_document())
	except DocumentExists:
		logger.info("game already initialised by peer", extra={"game_id": game_id, "user_id": player_id})
		return await require_game(game_id)
	obs_metrics.inc_game("created")
	created = GameState.from_document(doc)
	await _broadcast(created)
	return created


async def submit_guess(game_id: str, user_id: str, guess: str) -> GameState:
	"""Apply a guess; turn and state checks come before the guess is validated."""
	store = get_store()
	for _ in range(MAX_SUBMIT_ATTEMPTS):
		state = await require_game(game_id)
		if not state.is_player(user_id):
			raise PermissionDenied("not_a_player")
		if state.completed:
			raise Stale("game_completed")
		if state.current_player != user_id:
			raise NotYourTurn()
		value = normalise_guess(guess)
		changes: Dict[str, Any] = {
			state.guesses_field(user_id): state.guesses_for(user_id) + [value],
			"currentPlayer": state.opponent_of(user_id),
		}
		won = value == state.word.upper()
		if won:
			changes["status"] = GameStatus.COMPLETED.value
			changes["winner"] = user_id
		try:
			doc = await store.update(GAMES, game_id, changes, expected_version=state.version)
		except WriteConflict:
			logger.info("guess raced another write", extra={"game_id": game_id, "user_id": user_id})
			continue
		updated = GameState.from_document(doc)
		obs_metrics.inc_game("guess")
		if won:
			obs_metrics.inc_game("completed")
			logger.info("game completed", extra={"game_id": game_id, "winner": user_id})
		await _broadcast(updated)
		return updated
	raise Stale("concurrent_update")


def game_view(state: GameState, viewer_id: str) -> Dict[str, Any]:
	"""Feedback for both players' guesses; the word only once completed."""

	def rows(guesses: List[str]) -> List[Dict[str, Any]]:
		return [
			{"guess": guess, "feedback": [item.value for item in score_guess(state.word, guess)]}
			for guess in guesses
		]

	return {
		"game_id": state.id,
		"status": state.status.value,
		"player1": state.player1,
		"player2": state.player2,
		"current_player": state.current_player,
		"your_turn": state.current_player == viewer_id and not state.completed,
		"winner": state.winner,
		"player1_guesses": rows(state.player1_guesses),
		"player2_guesses": rows(state.player2_guesses),
		"word": state.word if state.completed else None,
	}


async def _broadcast(state: GameState) -> None:
	for player in (state.player1, state.player2):
		await sockets.emit_game_state(player, game_view(state, player))
	await sockets.notify(state.player1, state.player2)
