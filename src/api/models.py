"""Requests and Response models"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from src.core.config import settings
from src.core.exceptions import InvalidRequestError
from src.core.shared_types import AIDifficulty, PaymentMethod

UserId = str
PositionRecord = dict[str, Any]

ROOM_CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{settings.room_code_length}}}$")
UPI_ID_PATTERN = re.compile(r"^[a-zA-Z0-9.\-_]{2,256}@[a-zA-Z]{2,64}$")


def _validate_user_id(value: str) -> str:
    value = value.strip()
    if not value:
        raise InvalidRequestError("User id cannot be empty.")
    return value


# --- REQUEST MODELS ---
class CreateRoomRequest(BaseModel):
    host_id: UserId
    max_players: int = settings.max_players
    is_private: bool = False
    require_all_ready: bool = False
    three_sixes_forfeit: bool = False
    ai_players: list[AIDifficulty] = []

    @field_validator("host_id")
    @classmethod
    def validate_host_id(cls, value: str) -> str:
        return _validate_user_id(value)

    @field_validator("max_players")
    @classmethod
    def validate_max_players(cls, value: int) -> int:
        if not settings.min_players <= value <= settings.max_players:
            raise InvalidRequestError(
                f"A room holds {settings.min_players} to {settings.max_players} players, not {value}."
            )
        return value


class RoomRequest(BaseModel):
    """Any request about a room made by one of its (future) players."""

    room_code: str
    user_id: UserId

    @field_validator("room_code", mode="before")
    @classmethod
    def validate_room_code(cls, value: Any) -> str:
        code = str(value).strip().upper()
        if not ROOM_CODE_PATTERN.match(code):
            raise InvalidRequestError(
                f"Cannot interpret room_code: {value!r}. Expected {settings.room_code_length} letters or digits."
            )
        return code

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: str) -> str:
        return _validate_user_id(value)


class JoinRoomRequest(RoomRequest):
    pass


class LeaveRoomRequest(RoomRequest):
    pass


class StartGameRequest(RoomRequest):
    pass


class ReadyRequest(RoomRequest):
    ready: bool = True


class RollDiceRequest(BaseModel):
    game_id: str
    user_id: UserId


class MoveRequest(BaseModel):
    game_id: str
    user_id: UserId
    piece_id: str


class CreateTournamentRequest(BaseModel):
    name: str
    entry_fee: float
    max_participants: int
    creator_id: UserId
    start_time: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise InvalidRequestError("Tournament name cannot be empty.")
        return value

    @field_validator("entry_fee")
    @classmethod
    def validate_entry_fee(cls, value: float) -> float:
        if value < 0:
            raise InvalidRequestError(f"Entry fee cannot be negative: {value}")
        return value

    @field_validator("max_participants")
    @classmethod
    def validate_max_participants(cls, value: int) -> int:
        if value < 2:
            raise InvalidRequestError(f"A tournament needs room for at least 2 participants, not {value}.")
        return value


class JoinTournamentRequest(BaseModel):
    tournament_id: str
    user_id: UserId


class MatchResultRequest(BaseModel):
    tournament_id: str
    round_index: int
    match_index: int
    winner_id: UserId


class CancelTournamentRequest(BaseModel):
    tournament_id: str
    reason: str = "Cancelled by organizer"


class AddMoneyRequest(BaseModel):
    user_id: UserId
    amount: float
    method: PaymentMethod = PaymentMethod.RAZORPAY

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: float) -> float:
        if not settings.min_deposit <= value <= settings.max_deposit:
            raise InvalidRequestError(
                f"Deposit must be between {settings.min_deposit} and {settings.max_deposit}, got {value}."
            )
        return value


class WithdrawRequest(BaseModel):
    user_id: UserId
    amount: float
    upi_id: str

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: float) -> float:
        if not settings.min_withdrawal <= value <= settings.max_withdrawal:
            raise InvalidRequestError(
                f"Withdrawal must be between {settings.min_withdrawal} and {settings.max_withdrawal}, got {value}."
            )
        return value

    @field_validator("upi_id")
    @classmethod
    def validate_upi_id(cls, value: str) -> str:
        value = value.strip()
        if not UPI_ID_PATTERN.match(value):
            raise InvalidRequestError(f"Invalid UPI id: {value!r}")
        return value


# --- RESPONSE MODELS ---
class RoomResponse(BaseModel):
    room_code: str
    game_id: str
    host_id: UserId
    players: list[UserId]
    status: str
    max_players: int
    current_players: int
    ready: list[UserId]
    player_mapping: dict[UserId, str]
    settings: dict[str, Any]


class PieceResponse(BaseModel):
    id: str
    position: PositionRecord
    status: str


class PlayerResponse(BaseModel):
    id: UserId
    color: str
    pieces: list[PieceResponse]
    is_ai: bool
    forfeited: bool = False


class MoveResponse(BaseModel):
    player_id: UserId
    piece_id: str
    from_position: PositionRecord
    to_position: PositionRecord
    dice_value: int
    captured_piece_id: Optional[str]


class GameResponse(BaseModel):
    game_id: str
    players: list[PlayerResponse]
    current_player_index: int
    current_player: UserId
    dice_value: Optional[int]
    game_status: str
    winner: Optional[UserId]
    turn_phase: str
    last_move: Optional[MoveResponse]


class LegalMoveResponse(BaseModel):
    piece_id: str
    from_position: PositionRecord
    to_position: PositionRecord
    captured_piece_id: Optional[str]


class DiceRollResponse(BaseModel):
    game_id: str
    player_id: UserId
    dice_value: int
    legal_moves: list[LegalMoveResponse]
    turn_passed: bool
    game: GameResponse


class MatchResponse(BaseModel):
    player1: Optional[UserId]
    player2: Optional[UserId]
    winner: Optional[UserId]
    game_id: Optional[str]
    room_code: Optional[str]
    status: str


class PrizeResponse(BaseModel):
    position: int
    user_id: Optional[UserId]
    prize: float
    percentage: float


class TournamentResponse(BaseModel):
    id: str
    name: str
    entry_fee: float
    max_participants: int
    current_participants: int
    creator_id: UserId
    status: str
    participants: list[UserId]
    bracket: list[list[MatchResponse]]
    current_round: int
    winner: Optional[UserId]
    prize_distribution: list[PrizeResponse]
    start_time: Optional[str]
    cancel_reason: Optional[str]
    settled: bool = False


class LeaderboardEntry(BaseModel):
    position: int
    user_id: UserId
    status: str
    wins: int
    prize: float
    eliminated_in_round: Optional[int]


class TournamentStatsResponse(BaseModel):
    tournament_id: str
    status: str
    total_participants: int
    total_entry_fees: float
    prize_pool: float
    current_round: int
    total_rounds: int
    matches_played: int
    matches_remaining: int
    start_time: Optional[str]


class TransactionResponse(BaseModel):
    id: str
    user_id: UserId
    type: str
    amount: float
    status: str
    description: str
    method: Optional[str]
    reference: Optional[str]
    timestamp: str


class WalletResponse(BaseModel):
    user_id: UserId
    balance: float
    transactions: list[TransactionResponse]


class UserStatsResponse(BaseModel):
    user_id: UserId
    games_played: int
    games_won: int
    win_rate: float  # percent of games played
    current_win_streak: int
    longest_win_streak: int
    total_captures: int
    multiplayer_games_played: int
    ai_games_played: int
    tournament_games_played: int
    tournament_games_won: int
    hard_ai_wins: int
    tournaments_won: int
    total_earnings: float
    last_game_at: Optional[str]


class RankingEntry(BaseModel):
    position: int
    user_id: UserId
    games_played: int
    games_won: int
    total_earnings: float
