"""Unit tests for src/ludo/bracket.py"""

from decimal import Decimal

import pytest

from src.core.exceptions import MatchStateError, TournamentStateError
from src.core.shared_types import MatchStatus
from src.ludo.bracket import (
    Bracket,
    build_bracket,
    champion,
    distribute_prizes,
    eliminated_in,
    feeders,
    is_round_complete,
    open_round,
    prize_pool,
    record_winner,
    round_sizes,
    runner_up,
    semifinal_losers,
)


def seeds(n: int) -> list[str]:
    return [f"p{i}" for i in range(1, n + 1)]


def play_out(bracket: Bracket) -> int:
    """Let player1 win every match. Returns the number of matches actually played."""
    played = 0
    for round_index in range(len(bracket)):
        for match_index in open_round(bracket, round_index):
            record_winner(bracket, round_index, match_index, bracket[round_index][match_index].player1)
            played += 1
        assert is_round_complete(bracket, round_index)
    return played


# --- SHAPE ---
@pytest.mark.parametrize(
    "participants, sizes",
    [
        (2, [1]),
        (3, [2, 1]),
        (4, [2, 1]),
        (5, [3, 2, 1]),
        (6, [3, 2, 1]),
        (7, [4, 2, 1]),
        (8, [4, 2, 1]),
        (9, [5, 3, 2, 1]),
    ],
)
def test_round_sizes(participants: int, sizes: list[int]) -> None:
    assert round_sizes(participants) == sizes


def test_bracket_needs_two_participants() -> None:
    with pytest.raises(TournamentStateError):
        build_bracket(["p1"])


def test_first_round_pairs_in_seed_order() -> None:
    bracket = build_bracket(seeds(4))
    assert [(m.player1, m.player2) for m in bracket[0]] == [("p1", "p2"), ("p3", "p4")]
    assert all(m.status == MatchStatus.PENDING for m in bracket[0])
    assert (bracket[1][0].player1, bracket[1][0].player2) == (None, None)


def test_odd_one_out_gets_a_bye() -> None:
    """The bye is decided right away and the player already waits in round two."""
    bracket = build_bracket(seeds(5))
    bye = bracket[0][2]
    assert (bye.player1, bye.player2, bye.winner) == ("p5", None, "p5")
    assert bye.status == MatchStatus.COMPLETED
    assert bracket[1][1].player1 == "p5"


def test_feeders() -> None:
    bracket = build_bracket(seeds(6))
    assert feeders(bracket, 0, 0) == []
    assert feeders(bracket, 1, 0) == [0, 1]
    assert feeders(bracket, 1, 1) == [2]  # only one match feeds it: a bye in round two


# --- PLAYING IT OUT ---
@pytest.mark.parametrize("participants", range(2, 10))
def test_every_field_size_produces_one_champion(participants: int) -> None:
    """Every entrant but the champion loses exactly once, in exactly N-1 matches."""
    bracket = build_bracket(seeds(participants))
    assert play_out(bracket) == participants - 1
    assert champion(bracket) == "p1"

    eliminated = [player for player in seeds(participants) if eliminated_in(bracket, player) is not None]
    assert sorted(eliminated) == sorted(seeds(participants)[1:])
    assert eliminated_in(bracket, "p1") is None


def test_six_players_advance_through_the_structural_bye() -> None:
    bracket = build_bracket(seeds(6))
    for match_index in open_round(bracket, 0):
        record_winner(bracket, 0, match_index, bracket[0][match_index].player2)

    # p2 and p4 meet; p6 waits alone in the second match of round two
    assert open_round(bracket, 1) == [0]
    assert bracket[1][1].winner == "p6"
    assert bracket[2][0].player2 == "p6"


def test_next_round_slot_is_filled_on_completion() -> None:
    bracket = build_bracket(seeds(4))
    record_winner(bracket, 0, 1, "p4")
    assert bracket[1][0].player2 == "p4"
    assert not is_round_complete(bracket, 0)


# --- RESULT ERRORS ---
def test_match_cannot_be_decided_twice() -> None:
    bracket = build_bracket(seeds(4))
    record_winner(bracket, 0, 0, "p1")
    with pytest.raises(MatchStateError):
        record_winner(bracket, 0, 0, "p2")


def test_winner_must_have_played() -> None:
    bracket = build_bracket(seeds(4))
    with pytest.raises(MatchStateError):
        record_winner(bracket, 0, 0, "p3")


def test_match_must_have_both_players() -> None:
    bracket = build_bracket(seeds(4))
    with pytest.raises(MatchStateError):
        record_winner(bracket, 1, 0, "p1")


@pytest.mark.parametrize("round_index, match_index", [(0, 2), (2, 0), (-1, 0)])
def test_unknown_match(round_index: int, match_index: int) -> None:
    bracket = build_bracket(seeds(4))
    with pytest.raises(MatchStateError):
        record_winner(bracket, round_index, match_index, "p1")


# --- PRIZES ---
@pytest.mark.parametrize(
    "fees, rate, pool",
    [
        (1000, 0.10, Decimal("900.00")),
        (33.33, 0.10, Decimal("29.99")),  # floored, never rounded up
        (0, 0.10, Decimal("0.00")),
    ],
)
def test_prize_pool(fees: float, rate: float, pool: Decimal) -> None:
    assert prize_pool(fees, rate) == pool


def test_prizes_for_a_full_bracket() -> None:
    bracket = build_bracket(seeds(8))
    play_out(bracket)
    assert runner_up(bracket) == "p5"
    assert semifinal_losers(bracket) == ["p3", "p7"]

    prizes = distribute_prizes(bracket, 8, Decimal("720.00"), 0.70, 0.20, 0.10, 4, 8)
    assert [(p.position, p.user_id, p.prize) for p in prizes] == [
        (1, "p1", 504.0),
        (2, "p5", 144.0),
        (3, "p3", 36.0),
        (3, "p7", 36.0),
    ]
    assert prizes[2].percentage == 5.0


def test_small_field_only_pays_the_winner() -> None:
    bracket = build_bracket(seeds(3))
    play_out(bracket)
    prizes = distribute_prizes(bracket, 3, Decimal("27.00"), 0.70, 0.20, 0.10, 4, 8)
    assert [(p.position, p.user_id, p.prize) for p in prizes] == [(1, "p1", 18.9)]


def test_prizes_never_exceed_the_pool() -> None:
    bracket = build_bracket(seeds(8))
    play_out(bracket)
    pool = prize_pool(71.11, 0.10)
    prizes = distribute_prizes(bracket, 8, pool, 0.70, 0.20, 0.10, 4, 8)
    assert sum(Decimal(str(p.prize)) for p in prizes) <= pool
