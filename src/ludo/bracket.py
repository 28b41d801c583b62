"""
Single elimination brackets and prize distribution

Key idea: every match owns two slots. Match j of round r+1 is fed by matches 2j (player1 slot) and 2j+1 (player2 slot)
of round r. A match with only one feeder is a bye: its player walks through as soon as the feeder is decided.

Round sizes: ceil(N/2) first round matches, then halve (rounding up) until a single final remains.
That gives ceil(log2 N) rounds for N entrants.

Pure functions on the transport model, so the tournament service can persist the bracket as is.
"""

from decimal import ROUND_DOWN, Decimal
from typing import Optional

from src.core.exceptions import MatchStateError, TournamentStateError
from src.core.models import MatchModel, PrizeModel, UserId
from src.core.shared_types import MatchStatus

Bracket = list[list[MatchModel]]

CENT = Decimal("0.01")


def round_sizes(participants: int) -> list[int]:
    if participants < 2:
        raise TournamentStateError(f"A bracket needs at least 2 participants, got {participants}")
    sizes = [(participants + 1) // 2]
    while sizes[-1] > 1:
        sizes.append((sizes[-1] + 1) // 2)
    return sizes


def build_bracket(seeded: list[UserId]) -> Bracket:
    """
    Pair the (already shuffled) participants in order. An odd one out gets a completed bye and is
    moved straight into its next round slot.
    """
    sizes = round_sizes(len(seeded))
    bracket: Bracket = [[MatchModel() for _ in range(size)] for size in sizes]

    for index, match in enumerate(bracket[0]):
        match.player1 = seeded[2 * index]
        if 2 * index + 1 < len(seeded):
            match.player2 = seeded[2 * index + 1]
        else:
            _complete_bye(match)
            _place_winner(bracket, 0, index)
    return bracket


def feeders(bracket: Bracket, round_index: int, match_index: int) -> list[int]:
    """Indices of the matches of the previous round that send their winner into this match."""
    if round_index == 0:
        return []
    previous_round = len(bracket[round_index - 1])
    return [i for i in (2 * match_index, 2 * match_index + 1) if i < previous_round]


def record_winner(bracket: Bracket, round_index: int, match_index: int, winner: UserId) -> MatchModel:
    match = get_match(bracket, round_index, match_index)
    if match.status == MatchStatus.COMPLETED:
        raise MatchStateError(f"Match {round_index}/{match_index} is already decided")
    if match.player1 is None or match.player2 is None:
        raise MatchStateError(f"Match {round_index}/{match_index} is still waiting for its players")
    if winner not in (match.player1, match.player2):
        raise MatchStateError(f"{winner} did not play match {round_index}/{match_index}")

    match.winner = winner
    match.status = MatchStatus.COMPLETED.value
    _place_winner(bracket, round_index, match_index)
    return match


def get_match(bracket: Bracket, round_index: int, match_index: int) -> MatchModel:
    if not 0 <= round_index < len(bracket) or not 0 <= match_index < len(bracket[round_index]):
        raise MatchStateError(f"No match {match_index} in round {round_index}")
    return bracket[round_index][match_index]


def is_round_complete(bracket: Bracket, round_index: int) -> bool:
    return all(match.status == MatchStatus.COMPLETED for match in bracket[round_index])


def is_final_round(bracket: Bracket, round_index: int) -> bool:
    return round_index == len(bracket) - 1


def open_round(bracket: Bracket, round_index: int) -> list[int]:
    """
    Make a round playable once the previous one is decided: byes walk through, and the indices of
    the matches that now have two players (and still need a room) are returned.
    """
    playable: list[int] = []
    for index, match in enumerate(bracket[round_index]):
        if match.status == MatchStatus.COMPLETED:
            continue
        if len(feeders(bracket, round_index, index)) == 1 and match.player1 is not None:
            _complete_bye(match)
            _place_winner(bracket, round_index, index)
        elif match.player1 is not None and match.player2 is not None:
            playable.append(index)
    return playable


def champion(bracket: Bracket) -> Optional[UserId]:
    return bracket[-1][0].winner


def loser(match: MatchModel) -> Optional[UserId]:
    if match.status != MatchStatus.COMPLETED or match.player2 is None:
        return None
    return match.player2 if match.winner == match.player1 else match.player1


def runner_up(bracket: Bracket) -> Optional[UserId]:
    return loser(bracket[-1][0])


def semifinal_losers(bracket: Bracket) -> list[UserId]:
    if len(bracket) < 2:
        return []
    return [player for match in bracket[-2] if (player := loser(match)) is not None]


def eliminated_in(bracket: Bracket, user_id: UserId) -> Optional[int]:
    """Round in which the player lost, None when still in the running (or the champion)."""
    for round_index, matches in enumerate(bracket):
        if any(loser(match) == user_id for match in matches):
            return round_index
    return None


# --- PRIZES ---
def prize_pool(total_fees: float, platform_fee_rate: float) -> Decimal:
    return (Decimal(str(total_fees)) * (1 - Decimal(str(platform_fee_rate)))).quantize(CENT, rounding=ROUND_DOWN)


def distribute_prizes(
    bracket: Bracket,
    participants: int,
    pool: Decimal,
    winner_share: float,
    runner_up_share: float,
    third_place_share: float,
    runner_up_min_participants: int,
    third_place_min_participants: int,
) -> list[PrizeModel]:
    """
    1st place always gets paid. 2nd and 3rd place only exist from a minimum field size on.
    3rd place is shared by both losing semi-finalists. Each prize is floored to cents, so the
    total paid out never exceeds the pool.
    """
    prizes = [_prize(1, champion(bracket), pool, Decimal(str(winner_share)))]

    if participants >= runner_up_min_participants:
        prizes.append(_prize(2, runner_up(bracket), pool, Decimal(str(runner_up_share))))

    if participants >= third_place_min_participants:
        thirds = semifinal_losers(bracket)
        for user_id in thirds:
            share = Decimal(str(third_place_share)) / len(thirds)
            prizes.append(_prize(3, user_id, pool, share))
    return prizes


def _prize(position: int, user_id: Optional[UserId], pool: Decimal, share: Decimal) -> PrizeModel:
    amount = (pool * share).quantize(CENT, rounding=ROUND_DOWN)
    return PrizeModel(
        position=position,
        user_id=user_id,
        prize=float(amount),
        percentage=float(share * 100),
    )


# --- HELPERS ---
def _complete_bye(match: MatchModel) -> None:
    match.winner = match.player1
    match.status = MatchStatus.COMPLETED.value


def _place_winner(bracket: Bracket, round_index: int, match_index: int) -> None:
    """Copy the winner into its slot of the next round (nothing to do after the final)."""
    if is_final_round(bracket, round_index):
        return
    target = bracket[round_index + 1][match_index // 2]
    if match_index % 2 == 0:
        target.player1 = bracket[round_index][match_index].winner
    else:
        target.player2 = bracket[round_index][match_index].winner
