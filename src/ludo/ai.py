"""
Computer players

Key idea: Use strategy pattern to pick one of the legal moves, one strategy per difficulty level.
Legality is decided by the rules; a strategy only ranks what the rules allow.
"""

import random
from typing import Callable, Optional

from src.core.shared_types import AIDifficulty
from src.ludo.board import DIE_FACES, LAST_TRACK_OFFSET, TRACK_LENGTH, is_safe_cell
from src.ludo.game import Game
from src.ludo.moves import Move
from src.ludo.pieces import HomeStretch, Position, Track, Yard

Strategy = Callable[[Game, list[Move], random.Random], Move]


def progress(position: Position) -> int:
    """Steps travelled along the color's own path: -1 in the yard, up to 56 when finished."""
    match position:
        case Yard():
            return -1
        case Track(offset=offset):
            return offset
        case HomeStretch(offset=offset):
            return LAST_TRACK_OFFSET + offset
    return LAST_TRACK_OFFSET + DIE_FACES


def is_threatened(game: Game, move: Move) -> bool:
    """An opponent piece stands within one die roll behind the landing cell."""
    target = move.to_position
    if not isinstance(target, Track) or is_safe_cell(target.cell):
        return False
    mover = game.current_player
    for opponent in game.players:
        if opponent.id == mover.id:
            continue
        for piece in opponent.pieces:
            if isinstance(piece.position, Track):
                distance = (target.cell - piece.position.cell) % TRACK_LENGTH
                if 1 <= distance <= DIE_FACES:
                    return True
    return False


# --- STRATEGIES ---
def random_move(game: Game, moves: list[Move], rng: random.Random) -> Move:
    return rng.choice(moves)


def greedy_move(game: Game, moves: list[Move], rng: random.Random) -> Move:
    """Finish a piece, else capture, else push the piece that is furthest along, else enter a new piece."""
    finishing = [m for m in moves if m.finishes]
    if finishing:
        return finishing[0]
    capturing = [m for m in moves if m.captured_piece_id]
    if capturing:
        return capturing[0]
    on_board = [m for m in moves if not isinstance(m.from_position, Yard)]
    if on_board:
        return max(on_board, key=lambda m: progress(m.from_position))
    return moves[0]


def score_move(game: Game, move: Move) -> float:
    score = progress(move.to_position) / 10
    if move.finishes:
        score += 100
    if move.captured_piece_id:
        score += 50
    if isinstance(move.from_position, Yard):
        score += 20
    if isinstance(move.to_position, HomeStretch) and isinstance(move.from_position, Track):
        score += 30
    if isinstance(move.to_position, Track) and is_safe_cell(move.to_position.cell):
        score += 15
    if is_threatened(game, move):
        score -= 25
    return score


def scored_move(game: Game, moves: list[Move], rng: random.Random) -> Move:
    best = max(score_move(game, move) for move in moves)
    return rng.choice([move for move in moves if score_move(game, move) == best])


AI_STRATEGIES: dict[AIDifficulty, Strategy] = {
    AIDifficulty.EASY: random_move,
    AIDifficulty.MEDIUM: greedy_move,
    AIDifficulty.HARD: scored_move,
}


def choose_move(game: Game, moves: list[Move], rng: random.Random) -> Optional[Move]:
    """Pick a move for the current (computer) player. None when there is nothing to play."""
    if not moves:
        return None
    difficulty = game.current_player.ai_difficulty or AIDifficulty.MEDIUM
    return AI_STRATEGIES[difficulty](game, moves, rng)

