from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from threading import RLock

from ..config import Config
from .errors import GameAlreadyStarted, NotFound, Unauthorized, ValidationFailed
from .models import Player, Room, Settings


logger = logging.getLogger(__name__)

ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 4


def normalize_room_id(room_id: str) -> str:
    return (room_id or "").strip().upper()


def validate_name(name: str, max_length: int | None = None) -> str:
    n = (name or "").strip()
    limit = max_length or Config.MAX_NAME_LENGTH
    if not n or len(n) > limit:
        raise ValidationFailed("invalid_name")
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        raise ValidationFailed("invalid_name")
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            raise ValidationFailed("invalid_name")
    return n


@dataclass
class Departure:
    room: Room
    player: Player
    room_closed: bool
    new_game_master: Player | None = None


class RoomRegistry:
    """Live rooms plus the connection -> room side table.

    One instance is built per application in ``create_app`` and handed to
    the Socket.IO handlers and HTTP routes.
    """

    def __init__(self, config=Config) -> None:
        self._config = config
        self._lock = RLock()
        self._rooms: dict[str, Room] = {}
        self._connections: dict[str, str] = {}

    @property
    def active_rooms_count(self) -> int:
        with self._lock:
            return len(self._rooms)

    def _new_code(self) -> str:
        while True:
            code = "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))
            if code not in self._rooms:
                return code

    def create_room(self, connection_id: str, founder_name: str) -> Room:
        return self.open_room(connection_id, founder_name)[0]

    def open_room(self, connection_id: str, founder_name: str) -> tuple[Room, Departure | None]:
        """Create a room for ``connection_id``, leaving its current room only on success."""
        name = validate_name(founder_name, self._config.MAX_NAME_LENGTH)
        with self._lock:
            departure = self._depart_locked(connection_id)
            code = self._new_code()
            founder = Player(id=connection_id, name=name, is_game_master=True)
            room = Room(
                id=code,
                game_master_id=connection_id,
                settings=Settings(
                    target_score=self._config.DEFAULT_TARGET_SCORE,
                    time_limit_seconds=self._config.DEFAULT_TIME_LIMIT_SEC,
                ),
                members={connection_id: founder},
            )
            self._rooms[code] = room
            self._connections[connection_id] = code

        logger.info("room %s created by %r", code, name)
        return room, departure

    def join_room(self, connection_id: str, room_id: str, player_name: str) -> Room:
        return self.move_to_room(connection_id, room_id, player_name)[0]

    def move_to_room(self, connection_id: str, room_id: str, player_name: str) -> tuple[Room, Departure | None]:
        """Join ``room_id``; the current room is left only once the join is certain."""
        name = validate_name(player_name, self._config.MAX_NAME_LENGTH)
        code = normalize_room_id(room_id)
        with self._lock:
            room = self._rooms.get(code)
            if room is None:
                raise NotFound("room_not_found")
            if self._connections.get(connection_id) == code:
                return room, None

            with room.lock:
                if room.state != "waiting":
                    raise GameAlreadyStarted("game_already_started")

                departure = self._depart_locked(connection_id)
                room.members[connection_id] = Player(id=connection_id, name=name)

            self._connections[connection_id] = code

        logger.info("player %r joined room %s", name, code)
        return room, departure

    def get_room(self, room_id: str) -> Room | None:
        with self._lock:
            return self._rooms.get(normalize_room_id(room_id))

    def room_for_connection(self, connection_id: str) -> Room | None:
        with self._lock:
            code = self._connections.get(connection_id)
            if code is None:
                return None
            return self._rooms.get(code)

    def remove_connection(self, connection_id: str) -> Departure | None:
        with self._lock:
            return self._depart_locked(connection_id)

    def _depart_locked(self, connection_id: str) -> Departure | None:
        code = self._connections.pop(connection_id, None)
        if code is None:
            return None
        room = self._rooms.get(code)
        if room is None:
            return None

        with room.lock:
            player = room.members.pop(connection_id, None)
            if player is None:
                return None

            if not room.members:
                # A closed room keeps no round, so a late image or tick finds nothing live.
                if room.active_round is not None:
                    room.active_round.cancel_timer()
                room.active_round = None
                room.state = "waiting"
                del self._rooms[code]
                logger.info("room %s closed", code)
                return Departure(room=room, player=player, room_closed=True)

            new_master = None
            if room.game_master_id == connection_id:
                new_master = next(iter(room.members.values()))
                new_master.is_game_master = True
                room.game_master_id = new_master.id
                logger.info("room %s: game master passed to %r", code, new_master.name)

            return Departure(room=room, player=player, room_closed=False, new_game_master=new_master)

    def update_settings(
        self,
        room: Room,
        connection_id: str,
        target_score=None,
        time_limit_seconds=None,
    ) -> bool:
        with room.lock:
            if not room.is_game_master(connection_id):
                raise Unauthorized("only_game_master")

            target = room.settings.target_score
            limit = room.settings.time_limit_seconds
            try:
                if target_score is not None:
                    target = int(target_score)
                if time_limit_seconds is not None:
                    limit = int(time_limit_seconds)
            except (TypeError, ValueError):
                return False

            if target < 1 or target > self._config.MAX_TARGET_SCORE:
                return False
            if limit < 1 or limit > self._config.MAX_TIME_LIMIT_SEC:
                return False

            room.settings = Settings(target_score=target, time_limit_seconds=limit)
            return True


def player_public(player: Player) -> dict:
    return {
        "id": player.id,
        "name": player.name,
        "score": player.score,
        "isGameMaster": player.is_game_master,
    }


def room_snapshot(room: Room) -> dict:
    with room.lock:
        return {
            "id": room.id,
            "players": [player_public(p) for p in room.members.values()],
            "gameMasterId": room.game_master_id,
            "state": room.state,
            "settings": {
                "targetScore": room.settings.target_score,
                "timeLimitSeconds": room.settings.time_limit_seconds,
            },
            "roundNumber": room.round_number,
        }


def round_image_state(room: Room) -> tuple[dict | None, int]:
    """In-progress round image and claim count for clients re-querying the room."""
    with room.lock:
        current = room.active_round
        if current is None or current.image is None:
            return None, 0
        image = {
            "imageData": current.image.data_url(),
            "keywordCount": current.total_count,
            "timeLimit": room.settings.time_limit_seconds,
            "roundNumber": room.round_number,
            "remaining": current.countdown_remaining,
        }
        return image, current.claimed_count
