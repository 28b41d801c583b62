"""
Orchestration of tournaments: registration (with entry fees), the single elimination bracket, a room per match,
round advancement, prizes, refunds and the notifications that go with them.
"""

import logging
import random
from dataclasses import asdict
from datetime import timedelta
from typing import Callable, Optional
from uuid import uuid4

from src.api.models import (
    CancelTournamentRequest,
    CreateTournamentRequest,
    JoinTournamentRequest,
    LeaderboardEntry,
    MatchResultRequest,
    TournamentResponse,
    TournamentStatsResponse,
)
from src.core.config import settings
from src.core.exceptions import (
    AlreadyRegisteredError,
    GameError,
    MatchStateError,
    RepositoryError,
    TournamentFullError,
    TournamentNotFoundError,
    TournamentNotOpenError,
    TournamentStateError,
)
from src.core.locks import KeyedLocks
from src.core.models import GameModel, PrizeModel, RoomModel, TournamentModel, UserId
from src.core.shared_types import MatchStatus, TournamentStatus
from src.db.records import Records
from src.ludo import bracket as brackets
from src.services.notifier import Notifier, SafeNotifier
from src.services.room_service import RoomService
from src.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

# (user_id, title, body) to send once the tournament lock is released
Notice = tuple[UserId, str, str]

TournamentListener = Callable[[TournamentModel], None]


class TournamentService:
    """Orchestration of layers for tournaments."""

    def __init__(
        self,
        records: Records,
        rooms: RoomService,
        wallet: WalletService,
        notifier: Notifier,
        rng: Optional[random.Random] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self.records = records
        self.rooms = rooms
        self.wallet = wallet
        self.notifier = SafeNotifier(notifier)
        self.rng = rng or random.Random()
        self.locks = locks or KeyedLocks()
        self._completed_listeners: list[TournamentListener] = []
        # match rooms report their game starting and its winner automatically
        self.rooms.add_game_started_listener(self._on_game_started)
        self.rooms.add_game_finished_listener(self._on_game_finished)

    def add_tournament_completed_listener(self, listener: TournamentListener) -> None:
        """Called (outside any lock) with a completed tournament once all its prizes are paid."""
        self._completed_listeners.append(listener)

    # -- Registration ---
    def create_tournament(self, request: CreateTournamentRequest) -> TournamentResponse:
        """Create an open tournament. A reminder is scheduled ahead of its start time, if it has one."""

        tournament = TournamentModel(
            id=str(uuid4()),
            name=request.name,
            entry_fee=request.entry_fee,
            max_participants=request.max_participants,
            creator_id=request.creator_id,
            status=TournamentStatus.OPEN.value,
            start_time=request.start_time.isoformat() if request.start_time else None,
        )
        if request.start_time:
            tournament.reminder_id = self.notifier.schedule(
                "Tournament starting soon",
                f"{tournament.name} starts at {request.start_time:%H:%M}",
                request.start_time - timedelta(seconds=settings.tournament_reminder_lead),
                {"type": "tournament_reminder", "tournament_id": tournament.id},
            )

        self.records.save_tournament(tournament)
        logger.info("Tournament %s (%s) created by %s", tournament.id, tournament.name, tournament.creator_id)
        return self._create_tournament_response(tournament)

    def join_tournament(self, request: JoinTournamentRequest) -> TournamentResponse:
        """
        Register a participant
        ----

        The entry fee is debited first. Registration and fee are all-or-nothing: if the registration cannot be
        stored, the fee is refunded and the error propagates.
        """
        with self.locks.hold(self._tournament_key(request.tournament_id)):
            tournament = self._fetch_tournament(request.tournament_id)

            if tournament.status != TournamentStatus.OPEN:
                raise TournamentNotOpenError(f"Tournament {tournament.name} is not open for registration")
            if request.user_id in tournament.participants:
                raise AlreadyRegisteredError(f"{request.user_id} is already registered for {tournament.name}")
            if tournament.current_participants >= tournament.max_participants:
                raise TournamentFullError(f"Tournament {tournament.name} is full")

            if tournament.entry_fee > 0:
                self.wallet.debit(request.user_id, tournament.entry_fee, f"Tournament entry - {tournament.name}")

            tournament.participants.append(request.user_id)
            try:
                self.records.save_tournament(tournament)
            except RepositoryError:
                if tournament.entry_fee > 0:
                    self.wallet.refund(
                        request.user_id, tournament.entry_fee, f"Tournament entry reversed - {tournament.name}"
                    )
                raise

        logger.info("%s joined tournament %s", request.user_id, tournament.id)
        self._notify([(request.user_id, "Tournament joined", f"You are registered for {tournament.name}")], tournament)
        return self._create_tournament_response(tournament)

    # -- Bracket ---
    def start_tournament(self, tournament_id: str) -> TournamentResponse:
        """
        Seed and start the bracket
        ----

        1. shuffle the participants (Fisher-Yates, with the injected random source)
        2. pair them up; an odd one out gets a bye into the next round
        3. every first round match gets its own room with both players already in it
        """
        with self.locks.hold(self._tournament_key(tournament_id)):
            tournament = self._fetch_tournament(tournament_id)

            if tournament.status != TournamentStatus.OPEN:
                raise TournamentStateError(f"Tournament {tournament.name} cannot be started. status: {tournament.status}")
            if tournament.current_participants < 2:
                raise TournamentStateError(
                    f"Need at least 2 participants to start {tournament.name}, got {tournament.current_participants}"
                )

            seeded = list(tournament.participants)
            self.rng.shuffle(seeded)
            tournament.bracket = brackets.build_bracket(seeded)
            tournament.current_round = 0
            tournament.status = TournamentStatus.STARTED.value
            self._create_match_rooms(tournament, 0, brackets.open_round(tournament.bracket, 0))

            self.records.save_tournament(tournament)

        logger.info("Tournament %s started with %d participants", tournament.id, tournament.current_participants)
        self._notify(
            [(p, "Tournament started", f"{tournament.name} has started. Good luck!") for p in tournament.participants],
            tournament,
        )
        return self._create_tournament_response(tournament)

    def handle_match_completion(
        self, tournament_id: str, round_index: int, match_index: int, winner_id: UserId
    ) -> TournamentResponse:
        """
        Record the winner of a match
        ----

        Once every match of the current round is decided, either the next round opens (winners fill their slots,
        byes walk through, full matches get a room) or, after the final, the tournament completes.
        """
        notices: list[Notice] = []
        with self.locks.hold(self._tournament_key(tournament_id)):
            tournament = self._fetch_tournament(tournament_id)
            if tournament.status != TournamentStatus.STARTED:
                raise TournamentStateError(f"Tournament {tournament.name} is not running. status: {tournament.status}")

            brackets.record_winner(tournament.bracket, round_index, match_index, winner_id)
            logger.info("Match %d/%d of tournament %s won by %s", round_index, match_index, tournament_id, winner_id)

            while brackets.is_round_complete(
                tournament.bracket, tournament.current_round
            ) and not brackets.is_final_round(tournament.bracket, tournament.current_round):
                tournament.current_round += 1
                playable = brackets.open_round(tournament.bracket, tournament.current_round)
                self._create_match_rooms(tournament, tournament.current_round, playable)
                notices.extend(
                    (player, "Next round", f"Round {tournament.current_round + 1} of {tournament.name} is ready")
                    for index in playable
                    for player in self._match_players(tournament, tournament.current_round, index)
                )

            # only the final can still be complete here
            if brackets.is_round_complete(tournament.bracket, tournament.current_round):
                notices.extend(self._complete(tournament, brackets.champion(tournament.bracket)))
            else:
                self.records.save_tournament(tournament)

        self._notify(notices, tournament)
        if tournament.status == TournamentStatus.COMPLETED:
            self._call_completed_listeners(tournament)
        return self._create_tournament_response(tournament)

    def report_match_result(self, request: MatchResultRequest) -> TournamentResponse:
        return self.handle_match_completion(
            request.tournament_id, request.round_index, request.match_index, request.winner_id
        )

    def complete_tournament(self, tournament_id: str, winner_id: UserId) -> TournamentResponse:
        """
        Close a started tournament with the given winner.

        The winner must be the bracket's champion; if the final is still open, this decides it. On a completed
        tournament whose payout got interrupted, this pays the prizes still owed.
        """
        with self.locks.hold(self._tournament_key(tournament_id)):
            tournament = self._fetch_tournament(tournament_id)
            if tournament.status == TournamentStatus.COMPLETED and not tournament.settled:
                if tournament.winner != winner_id:
                    raise MatchStateError(f"{tournament.name} was won by {tournament.winner}, not {winner_id}")
                logger.info("Resuming payout of tournament %s", tournament.id)
                notices = self._pay_out(tournament)
            else:
                if tournament.status != TournamentStatus.STARTED:
                    raise TournamentStateError(
                        f"Tournament {tournament.name} is not running. status: {tournament.status}"
                    )
                champion = brackets.champion(tournament.bracket)
                if champion is None:
                    brackets.record_winner(tournament.bracket, len(tournament.bracket) - 1, 0, winner_id)
                elif champion != winner_id:
                    raise MatchStateError(f"{winner_id} did not win the final of {tournament.name}, {champion} did")
                notices = self._complete(tournament, winner_id)
            leftover_rooms = self._undecided_rooms(tournament)

        self._tear_down_rooms(leftover_rooms)
        self._notify(notices, tournament)
        self._call_completed_listeners(tournament)
        return self._create_tournament_response(tournament)

    def cancel_tournament(self, request: CancelTournamentRequest) -> TournamentResponse:
        """
        Refund every entry fee in full. Completed tournaments cannot be cancelled.

        The status is stored first, then the refunds are paid. If a refund fails, cancelling again pays the ones
        still owed: each participant is refunded once.
        """
        with self.locks.hold(self._tournament_key(request.tournament_id)):
            tournament = self._fetch_tournament(request.tournament_id)
            if tournament.status == TournamentStatus.COMPLETED or (
                tournament.status == TournamentStatus.CANCELLED and tournament.settled
            ):
                raise TournamentStateError(f"Cannot cancel {tournament.status} tournament {tournament.name}")

            if tournament.status == TournamentStatus.CANCELLED:
                logger.info("Resuming refunds of tournament %s", tournament.id)
            else:
                tournament.status = TournamentStatus.CANCELLED.value
                tournament.cancel_reason = request.reason
                self.records.save_tournament(tournament)

            if tournament.entry_fee > 0:
                for participant in tournament.participants:
                    self.wallet.refund(
                        participant,
                        tournament.entry_fee,
                        f"Tournament refund - {tournament.name}",
                        reference=f"tournament:{tournament.id}:refund",
                        unique_reference=True,
                    )
            tournament.settled = True
            self.records.save_tournament(tournament)
            leftover_rooms = self._undecided_rooms(tournament)

        self._tear_down_rooms(leftover_rooms)
        if tournament.reminder_id:
            self.notifier.cancel(tournament.reminder_id)
        logger.info("Tournament %s cancelled: %s", tournament.id, request.reason)
        self._notify(
            [
                (p, "Tournament cancelled", f"{tournament.name} has been cancelled. Entry fee refunded.")
                for p in tournament.participants
            ],
            tournament,
        )
        return self._create_tournament_response(tournament)

    # -- Queries ---
    def get_tournament(self, tournament_id: str) -> TournamentResponse:
        return self._create_tournament_response(self._fetch_tournament(tournament_id))

    def list_tournaments(self, status: Optional[TournamentStatus] = None) -> list[TournamentResponse]:
        tournaments = [t for t in self.records.list_tournaments() if status is None or t.status == status]
        return [self._create_tournament_response(t) for t in sorted(tournaments, key=lambda t: t.created_at)]

    def user_tournaments(self, user_id: UserId) -> list[TournamentResponse]:
        tournaments = [t for t in self.records.list_tournaments() if user_id in t.participants]
        return [self._create_tournament_response(t) for t in sorted(tournaments, key=lambda t: t.created_at)]

    def leaderboard(self, tournament_id: str) -> list[LeaderboardEntry]:
        """
        Standings: players still in the running first, then by the round they got knocked out in (later is better),
        then by number of wins.
        """
        tournament = self._fetch_tournament(tournament_id)
        prizes: dict[UserId, float] = {}
        for prize in tournament.prize_distribution:
            if prize.user_id:
                prizes[prize.user_id] = prizes.get(prize.user_id, 0) + prize.prize

        rows = []
        for user_id in tournament.participants:
            eliminated = brackets.eliminated_in(tournament.bracket, user_id)
            wins = sum(
                1
                for matches in tournament.bracket
                for match in matches
                if match.winner == user_id and match.player2 is not None
            )
            rows.append((user_id, eliminated, wins))

        rounds = len(tournament.bracket)
        rows.sort(key=lambda row: (row[1] is not None, -(row[1] if row[1] is not None else rounds), -row[2]))

        return [
            LeaderboardEntry(
                position=position,
                user_id=user_id,
                status=self._standing(tournament, user_id, eliminated),
                wins=wins,
                prize=prizes.get(user_id, 0),
                eliminated_in_round=eliminated,
            )
            for position, (user_id, eliminated, wins) in enumerate(rows, start=1)
        ]

    def stats(self, tournament_id: str) -> TournamentStatsResponse:
        tournament = self._fetch_tournament(tournament_id)
        total_fees = tournament.entry_fee * tournament.current_participants
        played = sum(
            1
            for matches in tournament.bracket
            for match in matches
            if match.status == MatchStatus.COMPLETED and match.player2 is not None
        )
        total_matches = max(tournament.current_participants - 1, 0) if tournament.bracket else 0
        return TournamentStatsResponse(
            tournament_id=tournament.id,
            status=tournament.status,
            total_participants=tournament.current_participants,
            total_entry_fees=total_fees,
            prize_pool=float(brackets.prize_pool(total_fees, settings.platform_fee_rate)),
            current_round=tournament.current_round,
            total_rounds=len(tournament.bracket),
            matches_played=played,
            matches_remaining=total_matches - played,
            start_time=tournament.start_time,
        )

    # -- Internal helpers --
    def _on_game_started(self, room: RoomModel, game: GameModel) -> None:
        """A match whose room started its game is being played."""
        tournament_id = room.settings.get("tournament_id")
        if tournament_id is None:
            return
        with self.locks.hold(self._tournament_key(tournament_id)):
            tournament = self._fetch_tournament(tournament_id)
            match = brackets.get_match(tournament.bracket, room.settings["round_index"], room.settings["match_index"])
            if match.status != MatchStatus.READY:
                return
            match.status = MatchStatus.PLAYING.value
            self.records.save_tournament(tournament)

    def _on_game_finished(self, room: RoomModel, game: GameModel) -> None:
        """A finished match room reports its winner to the bracket."""
        tournament_id = room.settings.get("tournament_id")
        if tournament_id is None or game.winner is None:
            return
        self.handle_match_completion(
            tournament_id, room.settings["round_index"], room.settings["match_index"], game.winner
        )

    def _complete(self, tournament: TournamentModel, winner_id: Optional[UserId]) -> list[Notice]:
        """
        Pay out and close the tournament (caller holds the tournament lock)
        ----

        1. pool = entry fees minus the platform fee
        2. prizes by place, each floored to cents
        3. persist the result, then credit the placed players (each prize is paid once, see _pay_out)
        """
        total_fees = tournament.entry_fee * tournament.current_participants
        pool = brackets.prize_pool(total_fees, settings.platform_fee_rate)
        prizes = brackets.distribute_prizes(
            tournament.bracket,
            tournament.current_participants,
            pool,
            settings.winner_share,
            settings.runner_up_share,
            settings.third_place_share,
            settings.runner_up_min_participants,
            settings.third_place_min_participants,
        )

        tournament.status = TournamentStatus.COMPLETED.value
        tournament.winner = winner_id
        tournament.prize_distribution = prizes
        self.records.save_tournament(tournament)
        logger.info("Tournament %s completed, won by %s (pool %s)", tournament.id, winner_id, pool)
        return self._pay_out(tournament)

    def _pay_out(self, tournament: TournamentModel) -> list[Notice]:
        """Credit every prize not paid yet, then mark the tournament settled (caller holds the tournament lock)."""
        for prize in self._payable(tournament.prize_distribution):
            self.wallet.credit(
                prize.user_id,
                prize.prize,
                f"Tournament prize (#{prize.position}) - {tournament.name}",
                reference=f"tournament:{tournament.id}:prize:{prize.position}",
                unique_reference=True,
            )
        tournament.settled = True
        self.records.save_tournament(tournament)

        return [
            (
                participant,
                "Tournament completed",
                f"Congratulations! You won {tournament.name}!"
                if participant == tournament.winner
                else f"{tournament.name} has ended. Better luck next time!",
            )
            for participant in tournament.participants
        ]

    def _call_completed_listeners(self, tournament: TournamentModel) -> None:
        for listener in self._completed_listeners:
            try:
                listener(tournament)
            except GameError:
                logger.exception("Tournament listener failed for tournament %s", tournament.id)

    def _payable(self, prizes: list[PrizeModel]) -> list[PrizeModel]:
        return [prize for prize in prizes if prize.user_id is not None and prize.prize > 0]

    def _create_match_rooms(self, tournament: TournamentModel, round_index: int, match_indices: list[int]) -> None:
        for match_index in match_indices:
            match = tournament.bracket[round_index][match_index]
            room = self.rooms.create_match_room(
                self._match_players(tournament, round_index, match_index),
                {"tournament_id": tournament.id, "round_index": round_index, "match_index": match_index},
            )
            match.room_code = room.room_code
            match.game_id = room.game_id
            match.status = MatchStatus.READY.value

    def _match_players(self, tournament: TournamentModel, round_index: int, match_index: int) -> list[UserId]:
        match = tournament.bracket[round_index][match_index]
        return [player for player in (match.player1, match.player2) if player is not None]

    def _undecided_rooms(self, tournament: TournamentModel) -> list[str]:
        """Rooms of matches that will never be decided."""
        return [
            match.room_code
            for matches in tournament.bracket
            for match in matches
            if match.room_code and match.status != MatchStatus.COMPLETED
        ]

    def _tear_down_rooms(self, room_codes: list[str]) -> None:
        """Runs without holding the tournament lock: deleting a room broadcasts to it."""
        for room_code in room_codes:
            self.rooms.delete_room(room_code)

    def _standing(self, tournament: TournamentModel, user_id: UserId, eliminated: Optional[int]) -> str:
        if tournament.winner == user_id:
            return "winner"
        if eliminated is not None:
            return "eliminated"
        if tournament.status == TournamentStatus.STARTED:
            return "active"
        return "registered"

    def _notify(self, notices: list[Notice], tournament: TournamentModel) -> None:
        """Runs without holding the tournament lock. Failures are logged by the SafeNotifier."""
        for user_id, title, body in notices:
            self.notifier.send_local(title, body, {"user_id": user_id, "tournament_id": tournament.id})

    def _fetch_tournament(self, tournament_id: str) -> TournamentModel:
        tournament = self.records.get_tournament(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(f"Tournament with {tournament_id=} not found.")
        return tournament

    def _create_tournament_response(self, tournament: TournamentModel) -> TournamentResponse:
        return TournamentResponse(current_participants=tournament.current_participants, **asdict(tournament))

    @staticmethod
    def _tournament_key(tournament_id: str) -> str:
        return f"tournament:{tournament_id}"
