"""
Player statistics: games played and won (per mode), win streaks, captures, tournament titles and prize money.

Finished room games and completed tournaments are recorded through the listeners of the room and tournament
services. Each user's record lives under stats/ and is updated while holding that user's lock.
"""

import logging
from dataclasses import asdict
from typing import Callable, Optional

from src.api.models import RankingEntry, UserStatsResponse
from src.core.locks import KeyedLocks
from src.core.models import GameModel, RoomModel, TournamentModel, UserId, UserStatsModel, utc_now_iso
from src.core.shared_types import AIDifficulty, GameMode, LeaderboardType
from src.db.records import Records
from src.services.room_service import RoomService
from src.services.tournament_service import TournamentService

logger = logging.getLogger(__name__)

DEFAULT_LEADERBOARD_SIZE = 50

LEADERBOARD_SCORES: dict[LeaderboardType, Callable[[UserStatsModel], float]] = {
    LeaderboardType.WINS: lambda stats: stats.games_won,
    LeaderboardType.EARNINGS: lambda stats: stats.total_earnings,
    LeaderboardType.GAMES: lambda stats: stats.games_played,
}


class StatisticsService:
    def __init__(
        self,
        records: Records,
        rooms: Optional[RoomService] = None,
        tournaments: Optional[TournamentService] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self.records = records
        self.locks = locks or KeyedLocks()
        if rooms is not None:
            rooms.add_game_finished_listener(self.record_game_end)
        if tournaments is not None:
            tournaments.add_tournament_completed_listener(self.record_tournament_end)

    # -- Recording ---
    def record_game_end(self, room: RoomModel, game: GameModel) -> None:
        """
        Count a finished game for every human player in it
        ----

        The mode is a tournament match if the room belongs to a tournament, a game against the computer if any seat
        was a computer player, and a multiplayer game otherwise. Captures are counted from the move history.
        """
        if room.settings.get("tournament_id") is not None:
            mode = GameMode.TOURNAMENT
        elif any(player.is_ai for player in game.players):
            mode = GameMode.AI
        else:
            mode = GameMode.MULTIPLAYER
        beat_hard_ai = any(player.ai_difficulty == AIDifficulty.HARD for player in game.players)

        for player in game.players:
            if player.is_ai:
                continue
            won = player.id == game.winner
            self.update_user_statistics(
                player.id,
                won,
                mode,
                captures=sum(
                    1 for move in game.move_history if move.player_id == player.id and move.captured_piece_id
                ),
                beat_hard_ai=won and beat_hard_ai,
            )
        logger.info("Recorded %s game %s won by %s", mode, game.game_id, game.winner)

    def update_user_statistics(
        self,
        user_id: UserId,
        won: bool,
        mode: GameMode = GameMode.MULTIPLAYER,
        captures: int = 0,
        beat_hard_ai: bool = False,
    ) -> UserStatsModel:
        """Add one finished game to the user's record."""
        with self.locks.hold(self._stats_key(user_id)):
            stats = self.records.get_user_stats(user_id)
            stats.games_played += 1
            stats.total_captures += captures
            stats.last_game_at = utc_now_iso()
            if mode == GameMode.TOURNAMENT:
                stats.tournament_games_played += 1
            elif mode == GameMode.AI:
                stats.ai_games_played += 1
            else:
                stats.multiplayer_games_played += 1

            if won:
                stats.games_won += 1
                stats.current_win_streak += 1
                stats.longest_win_streak = max(stats.longest_win_streak, stats.current_win_streak)
                if mode == GameMode.TOURNAMENT:
                    stats.tournament_games_won += 1
                if beat_hard_ai:
                    stats.hard_ai_wins += 1
            else:
                stats.current_win_streak = 0

            self.records.save_user_stats(stats)
        return stats

    def record_tournament_end(self, tournament: TournamentModel) -> None:
        """Credit the title to the winner and every paid prize to the earnings of its player."""
        earnings: dict[UserId, float] = {}
        for prize in tournament.prize_distribution:
            if prize.user_id is not None and prize.prize > 0:
                earnings[prize.user_id] = earnings.get(prize.user_id, 0) + prize.prize

        for user_id in sorted(set(earnings) | ({tournament.winner} if tournament.winner else set())):
            with self.locks.hold(self._stats_key(user_id)):
                stats = self.records.get_user_stats(user_id)
                stats.total_earnings = round(stats.total_earnings + earnings.get(user_id, 0), 2)
                if user_id == tournament.winner:
                    stats.tournaments_won += 1
                self.records.save_user_stats(stats)
        logger.info("Recorded results of tournament %s", tournament.id)

    # -- Queries ---
    def get_user_statistics(self, user_id: UserId) -> UserStatsResponse:
        stats = self.records.get_user_stats(user_id)
        win_rate = round(stats.games_won / stats.games_played * 100, 2) if stats.games_played else 0.0
        return UserStatsResponse(**asdict(stats), win_rate=win_rate)

    def leaderboard(
        self, kind: LeaderboardType = LeaderboardType.WINS, limit: int = DEFAULT_LEADERBOARD_SIZE
    ) -> list[RankingEntry]:
        """Best players first. Ties go to the player with fewer games, then alphabetically."""
        ranked = sorted(
            self.records.list_user_stats(),
            key=lambda stats: (-LEADERBOARD_SCORES[kind](stats), stats.games_played, stats.user_id),
        )
        return [
            RankingEntry(
                position=position,
                user_id=stats.user_id,
                games_played=stats.games_played,
                games_won=stats.games_won,
                total_earnings=stats.total_earnings,
            )
            for position, stats in enumerate(ranked[:limit], start=1)
        ]

    @staticmethod
    def _stats_key(user_id: UserId) -> str:
        return f"stats:{user_id}"
