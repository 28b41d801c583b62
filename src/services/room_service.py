"""
Orchestration of rooms and the games played in them: API requests to business logic and persistence layers
(and the reverse direction).

Every read-modify-write holds the lock of the record it changes. State changes follow the same order:
mutate --> persist --> broadcast. Broadcasts and game-finished listeners run after the lock is released.
"""

import logging
import random
import secrets
import string
from dataclasses import asdict
from typing import Any, Callable, Optional
from uuid import uuid4

from src.api.models import (
    CreateRoomRequest,
    DiceRollResponse,
    GameResponse,
    JoinRoomRequest,
    LeaveRoomRequest,
    LegalMoveResponse,
    MoveRequest,
    ReadyRequest,
    RollDiceRequest,
    RoomResponse,
    StartGameRequest,
)
from src.core.config import settings
from src.core.exceptions import (
    AlreadyInRoomError,
    GameAlreadyStartedError,
    GameError,
    GameNotFoundError,
    GameStateError,
    InvalidRequestError,
    NotEnoughPlayersError,
    NotHostError,
    NotInRoomError,
    PlayersNotReadyError,
    RepositoryError,
    RoomFullError,
    RoomNotFoundError,
)
from src.core.locks import KeyedLocks
from src.core.models import GameModel, RoomModel, UserId
from src.core.shared_types import COLOR_ORDER, AIDifficulty, GameStatus, RoomStatus
from src.db.records import BROADCASTS, GAMES, ROOMS, Records
from src.db.repository import RecordCallback, Unsubscribe
from src.ludo.ai import choose_move
from src.ludo.board import DIE_FACES
from src.ludo.game import Game
from src.ludo.moves import Move
from src.ludo.pieces import position_to_record
from src.ludo.turns import TurnRules

logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_ROOM_CODE_ATTEMPTS = 100

GameListener = Callable[[RoomModel, GameModel], None]


class RoomService:
    """Orchestration of layers for Ludo rooms and games."""

    def __init__(
        self,
        records: Records,
        rng: Optional[random.Random] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self.records = records
        self.rng = rng or random.Random()
        self.locks = locks or KeyedLocks()
        self._game_started_listeners: list[GameListener] = []
        self._game_finished_listeners: list[GameListener] = []

    def add_game_started_listener(self, listener: GameListener) -> None:
        """Called (outside any lock) with the room and its new game, once both are persisted."""
        self._game_started_listeners.append(listener)

    def add_game_finished_listener(self, listener: GameListener) -> None:
        """Called (outside any lock) with the finished room and game, once the result is persisted."""
        self._game_finished_listeners.append(listener)

    # -- Room lifecycle ---
    def create_room(self, request: CreateRoomRequest) -> RoomResponse:
        """Host requested a new room. The host is its first player; computer players (if any) join right away."""

        if len(request.ai_players) >= request.max_players:
            raise InvalidRequestError(
                f"{len(request.ai_players)} computer players leave no seat for the host in a room of {request.max_players}"
            )

        ai_players = {
            f"ai_{difficulty}_{index + 1}": difficulty.value
            for index, difficulty in enumerate(request.ai_players)
        }
        room = RoomModel(
            room_code=self._generate_unique_room_code(),
            game_id=str(uuid4()),
            host_id=request.host_id,
            players=[request.host_id, *ai_players],
            status=RoomStatus.WAITING.value,
            max_players=request.max_players,
            settings={
                "is_private": request.is_private,
                "require_all_ready": request.require_all_ready,
                "three_sixes_forfeit": request.three_sixes_forfeit,
                "ai_players": ai_players,
            },
            ready=list(ai_players),
        )

        # Store the RoomModel (failure propagates: no room was created)
        self.records.save_room(room)
        logger.info("Room %s created by %s", room.room_code, room.host_id)
        return self._create_room_response(room)

    def create_match_room(self, players: list[UserId], metadata: dict[str, Any]) -> RoomModel:
        """Private room with all its players already joined (ex. a tournament match)."""
        room = RoomModel(
            room_code=self._generate_unique_room_code(),
            game_id=str(uuid4()),
            host_id=players[0],
            players=list(players),
            status=RoomStatus.WAITING.value,
            max_players=len(players),
            settings={"is_private": True, "require_all_ready": False, **metadata},
        )
        self.records.save_room(room)
        logger.info("Match room %s created for %s", room.room_code, ", ".join(players))
        return room

    def join_room(self, request: JoinRoomRequest) -> RoomResponse:
        """Player requested to join a room."""

        with self.locks.hold(self._room_key(request.room_code)):
            room = self._fetch_room(request.room_code)

            if room.status != RoomStatus.WAITING:
                raise GameAlreadyStartedError(f"Room {room.room_code} is not accepting new players")
            if room.current_players >= room.max_players:
                raise RoomFullError(f"Room {room.room_code} is full")
            if request.user_id in room.players:
                raise AlreadyInRoomError(f"{request.user_id} already joined room {room.room_code}")

            room.players.append(request.user_id)
            self.records.save_room(room)

        self._broadcast(room.room_code, "player_joined", {"player_id": request.user_id})
        logger.info("%s joined room %s", request.user_id, room.room_code)
        return self._create_room_response(room)

    def leave_room(self, request: LeaveRoomRequest) -> Optional[RoomResponse]:
        """
        Player requested to leave a room
        ----

        * leaving a game in progress forfeits it: the seat is skipped from then on, and the last player left in the
          running wins
        * the last human player leaving deletes the room (and its game)
        * a leaving host hands over to the first remaining human player

        Returns None when the room got deleted.
        """
        finished_game: Optional[GameModel] = None
        with self.locks.hold(self._room_key(request.room_code)):
            room = self._fetch_room(request.room_code)
            if request.user_id not in room.players:
                raise NotInRoomError(f"{request.user_id} is not in room {room.room_code}")

            room.players.remove(request.user_id)
            if request.user_id in room.ready:
                room.ready.remove(request.user_id)

            humans = [player for player in room.players if player not in self._ai_players(room)]
            if not humans:
                self._remove_room(room)
                logger.info("Room %s deleted: last player left", room.room_code)
                deleted = True
            else:
                deleted = False
                if room.host_id == request.user_id:
                    room.host_id = humans[0]
                if room.status == RoomStatus.PLAYING:
                    finished_game = self._forfeit(room, request.user_id)
                self.records.save_room(room)

        if deleted:
            self._broadcast(room.room_code, "room_deleted", {})
            return None

        self._broadcast(
            room.room_code,
            "player_left",
            {"player_id": request.user_id, "host_id": room.host_id},
        )
        if finished_game is not None:
            self._finish_game(finished_game)
            room = self.records.get_room(room.room_code) or room
        return self._create_room_response(room)

    def set_player_ready(self, request: ReadyRequest) -> RoomResponse:
        with self.locks.hold(self._room_key(request.room_code)):
            room = self._fetch_room(request.room_code)
            if request.user_id not in room.players:
                raise NotInRoomError(f"{request.user_id} is not in room {room.room_code}")
            if room.status != RoomStatus.WAITING:
                raise GameAlreadyStartedError(f"Game in room {room.room_code} already started")

            if request.ready and request.user_id not in room.ready:
                room.ready.append(request.user_id)
            if not request.ready and request.user_id in room.ready:
                room.ready.remove(request.user_id)
            self.records.save_room(room)

        self._broadcast(room.room_code, "player_ready", {"player_id": request.user_id, "ready": request.ready})
        return self._create_room_response(room)

    def start_game(self, request: StartGameRequest) -> GameResponse:
        """
        Host requested to start the game
        ----

        1. only the host, only while waiting, and only with enough (ready) players
        2. colors are handed out in join order
        3. persist the new game, then the room, then tell everybody
        """
        with self.locks.hold(self._room_key(request.room_code)):
            room = self._fetch_room(request.room_code)

            if room.host_id != request.user_id:
                raise NotHostError(f"Only the host ({room.host_id}) can start the game")
            if room.status != RoomStatus.WAITING:
                raise GameAlreadyStartedError(f"Game in room {room.room_code} already started")
            if room.current_players < settings.min_players:
                raise NotEnoughPlayersError(
                    f"Need at least {settings.min_players} players to start, room has {room.current_players}"
                )
            not_ready = [player for player in room.players if player not in room.ready]
            if room.settings.get("require_all_ready") and not_ready:
                raise PlayersNotReadyError(f"Waiting for {', '.join(not_ready)} to get ready")

            # Create the Game from the room's players, and convert into GameModel
            game = Game.new_game(
                game_id=room.game_id,
                player_ids=room.players,
                ai_players={
                    player_id: AIDifficulty(difficulty)
                    for player_id, difficulty in self._ai_players(room).items()
                },
                rules=TurnRules(three_sixes_forfeit=bool(room.settings.get("three_sixes_forfeit"))),
                room_code=room.room_code,
            )
            game_model = game.to_model()

            room.player_mapping = {
                player_id: color.value for player_id, color in zip(room.players, COLOR_ORDER)
            }
            room.status = RoomStatus.PLAYING.value

            # store the game before the room points players to it
            self.records.save_game(game_model)
            self.records.save_room(room)

        response = self._create_game_response(game_model)
        self._broadcast(room.room_code, "game_started", {"game": response.model_dump()})
        logger.info("Game %s started in room %s", room.game_id, room.room_code)
        self._call_listeners(self._game_started_listeners, room, game_model)
        return response

    def delete_room(self, room_code: str) -> bool:
        """Remove a room and its game. False when there was nothing to delete."""
        with self.locks.hold(self._room_key(room_code)):
            room = self.records.get_room(room_code)
            if room is None:
                return False
            self._remove_room(room)
        self._broadcast(room_code, "room_deleted", {})
        return True

    # -- Playing ---
    def roll_dice(self, request: RollDiceRequest) -> DiceRollResponse:
        """Current player requested a roll. The value is drawn here, never taken from the client."""

        with self.locks.hold(self._game_key(request.game_id)):
            game = Game.from_model(self._fetch_game(request.game_id))
            game.assert_can_roll(request.user_id)
            value = self.rng.randint(1, DIE_FACES)
            moves = game.roll_dice(request.user_id, value)
            game_model = game.to_model()
            self.records.save_game(game_model)

        response = DiceRollResponse(
            game_id=game.game_id,
            player_id=request.user_id,
            dice_value=value,
            legal_moves=[self._create_legal_move_response(move) for move in moves],
            turn_passed=not moves,
            game=self._create_game_response(game_model),
        )
        self._broadcast(
            game_model.room_code,
            "dice_rolled",
            {"player_id": request.user_id, "dice_value": value, "turn_passed": not moves},
        )
        return response

    def make_move(self, request: MoveRequest) -> GameResponse:
        """Make a move attempt. Illegal moves raise to the caller only: nothing gets broadcast."""

        with self.locks.hold(self._game_key(request.game_id)):
            # Retrieve persisted GameModel and create a new Game instance from it
            game = Game.from_model(self._fetch_game(request.game_id))

            # Attempt the move
            move = game.make_move(request.user_id, request.piece_id)

            # Capture updated state in GameModel and store it
            game_model = game.to_model()
            self.records.save_game(game_model)

        self._broadcast(game_model.room_code, "move_made", asdict(move))
        if game.status == GameStatus.FINISHED:
            self._finish_game(game_model)
        return self._create_game_response(game_model)

    def play_ai_turn(self, game_id: str) -> GameResponse:
        """Roll (and move, if possible) for a computer player whose turn it is."""

        with self.locks.hold(self._game_key(game_id)):
            game = Game.from_model(self._fetch_game(game_id))
            player = game.current_player
            game.assert_can_roll(player.id)
            if not player.is_ai:
                raise GameStateError(f"{player.id} is not a computer player")

            value = self.rng.randint(1, DIE_FACES)
            chosen = choose_move(game, game.roll_dice(player.id, value), self.rng)
            move = game.make_move(player.id, chosen.piece_id) if chosen else None
            game_model = game.to_model()
            self.records.save_game(game_model)

        self._broadcast(
            game_model.room_code,
            "dice_rolled",
            {"player_id": player.id, "dice_value": value, "turn_passed": chosen is None},
        )
        if move:
            self._broadcast(game_model.room_code, "move_made", asdict(move))
        if game.status == GameStatus.FINISHED:
            self._finish_game(game_model)
        return self._create_game_response(game_model)

    # -- Queries ---
    def get_room(self, room_code: str) -> RoomResponse:
        return self._create_room_response(self._fetch_room(room_code))

    def get_game_state(self, game_id: str) -> GameResponse:
        """
        Retrieve current game state.
        ----
        Used by clients that (re)connect and need the full state instead of the broadcast events.
        """
        return self._create_game_response(self._fetch_game(game_id))

    def legal_moves(self, game_id: str, user_id: UserId) -> list[LegalMoveResponse]:
        game = Game.from_model(self._fetch_game(game_id))
        return [self._create_legal_move_response(move) for move in game.legal_moves(user_id)]

    def available_rooms(self) -> list[RoomResponse]:
        """Public rooms still waiting for players, oldest first."""
        rooms = [
            room
            for room in self.records.list_rooms()
            if room.status == RoomStatus.WAITING
            and not room.settings.get("is_private")
            and room.current_players < room.max_players
        ]
        return [self._create_room_response(room) for room in sorted(rooms, key=lambda r: r.created_at)]

    # -- Subscriptions ---
    def subscribe_room(self, room_code: str, callback: RecordCallback) -> Unsubscribe:
        return self.records.subscribe(ROOMS, room_code, callback)

    def subscribe_game(self, game_id: str, callback: RecordCallback) -> Unsubscribe:
        return self.records.subscribe(GAMES, game_id, callback)

    def subscribe_events(self, room_code: str, callback: RecordCallback) -> Unsubscribe:
        """Broadcast events of a room (player_joined, dice_rolled, move_made, ...)."""
        return self.records.subscribe(BROADCASTS, room_code, callback)

    # -- Internal helpers --
    def _finish_game(self, game_model: GameModel) -> None:
        """Close the room of a finished game and hand the result to the listeners."""
        room_code = game_model.room_code
        if room_code is None:
            logger.warning("Finished game %s has no room", game_model.game_id)
            return

        with self.locks.hold(self._room_key(room_code)):
            room = self.records.get_room(room_code)
            if room is None:
                logger.warning("Room %s of finished game %s no longer exists", room_code, game_model.game_id)
                return
            room.status = RoomStatus.FINISHED.value
            self.records.save_room(room)

        self._broadcast(room_code, "game_ended", {"winner": game_model.winner})
        logger.info("Game %s in room %s won by %s", game_model.game_id, room_code, game_model.winner)

        # the game result is final at this point: a failing listener cannot undo it
        self._call_listeners(self._game_finished_listeners, room, game_model)

    def _call_listeners(self, listeners: list[GameListener], room: RoomModel, game_model: GameModel) -> None:
        for listener in listeners:
            try:
                listener(room, game_model)
            except GameError:
                logger.exception("Game listener failed for game %s", game_model.game_id)

    def _forfeit(self, room: RoomModel, user_id: UserId) -> Optional[GameModel]:
        """Caller holds the room lock. Returns the game if the forfeit decided it."""
        with self.locks.hold(self._game_key(room.game_id)):
            game = Game.from_model(self._fetch_game(room.game_id))
            if game.status != GameStatus.PLAYING:
                return None
            winner = game.forfeit(user_id)
            game_model = game.to_model()
            self.records.save_game(game_model)

        logger.info("%s forfeited game %s", user_id, room.game_id)
        return game_model if winner is not None else None

    def _remove_room(self, room: RoomModel) -> None:
        self.records.delete_room(room.room_code)
        self.records.delete_game(room.game_id)

    def _broadcast(self, room_code: Optional[str], event_type: str, payload: dict[str, Any]) -> None:
        """State is already persisted: a failed broadcast is logged, never raised."""
        if room_code is None:
            return
        try:
            self.records.broadcast(room_code, event_type, payload)
        except RepositoryError:
            logger.warning("Broadcast of %s to room %s failed", event_type, room_code, exc_info=True)

    def _generate_unique_room_code(self) -> str:
        for _ in range(MAX_ROOM_CODE_ATTEMPTS):
            code = self._new_room_code()
            if not self.records.room_exists(code):
                return code
        raise RepositoryError("Could not find a free room code")

    def _new_room_code(self) -> str:
        return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(settings.room_code_length))

    def _ai_players(self, room: RoomModel) -> dict[UserId, str]:
        return room.settings.get("ai_players", {})

    def _fetch_room(self, room_code: str) -> RoomModel:
        """Attempt to find the room in the repository and raise error if it fails."""
        room = self.records.get_room(room_code)
        if room is None:
            raise RoomNotFoundError(f"Room {room_code} not found.")
        return room

    def _fetch_game(self, game_id: str) -> GameModel:
        """Attempt to find the game in the repository and raise error if it fails."""
        game_model = self.records.get_game(game_id)
        if game_model is None:
            raise GameNotFoundError(f"Game with {game_id=} not found.")
        return game_model

    def _create_room_response(self, room: RoomModel) -> RoomResponse:
        return RoomResponse(current_players=room.current_players, **asdict(room))

    def _create_game_response(self, model: GameModel) -> GameResponse:
        """Convert info in GameModel to a GameResponse."""
        return GameResponse.model_validate(
            {**asdict(model), "current_player": model.players[model.current_player_index].id}
        )

    def _create_legal_move_response(self, move: Move) -> LegalMoveResponse:
        return LegalMoveResponse(
            piece_id=move.piece_id,
            from_position=position_to_record(move.from_position),
            to_position=position_to_record(move.to_position),
            captured_piece_id=move.captured_piece_id,
        )

    @staticmethod
    def _room_key(room_code: str) -> str:
        return f"room:{room_code}"

    @staticmethod
    def _game_key(game_id: str) -> str:
        return f"game:{game_id}"
