"""
Type definitions used across layers
"""

from enum import StrEnum


class Color(StrEnum):
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    BLUE = "blue"


# Join order decides the color. Red always goes first.
COLOR_ORDER: tuple[Color, ...] = (Color.RED, Color.GREEN, Color.YELLOW, Color.BLUE)


class PieceStatus(StrEnum):
    IN_YARD = "in_yard"
    ON_BOARD = "on_board"
    FINISHED = "finished"


class GameStatus(StrEnum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class TurnPhase(StrEnum):
    AWAITING_ROLL = "awaiting_roll"
    AWAITING_MOVE = "awaiting_move"
    TURN_COMPLETE = "turn_complete"


class RoomStatus(StrEnum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class TournamentStatus(StrEnum):
    OPEN = "open"
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MatchStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    PLAYING = "playing"
    COMPLETED = "completed"


class TransactionType(StrEnum):
    CREDIT = "credit"
    DEBIT = "debit"
    WITHDRAWAL = "withdrawal"
    REFUND = "refund"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BalanceOperation(StrEnum):
    ADD = "add"
    SUBTRACT = "subtract"


class PaymentMethod(StrEnum):
    RAZORPAY = "razorpay"
    UPI = "upi"
    CARD = "card"


class AIDifficulty(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GameMode(StrEnum):
    MULTIPLAYER = "multiplayer"
    AI = "ai"
    TOURNAMENT = "tournament"


class LeaderboardType(StrEnum):
    WINS = "wins"
    EARNINGS = "earnings"
    GAMES = "games"
