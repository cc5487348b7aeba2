from __future__ import annotations

import functools
import logging
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..config import Config
from ..game import rounds, service
from ..game.errors import GameError, ImageGenerationFailed, Unauthorized
from ..game.models import Room, Round
from ..game.rounds import RoundResult
from ..game.service import RoomRegistry
from ..services.images import ImageProvider
from . import events
from .countdown import Countdown


logger = logging.getLogger(__name__)


def _payload(data: Any) -> dict:
    return data if isinstance(data, dict) else {}


def _drop_unauthorized(handler):
    # Master-only requests from anyone else are ignored without a reply.
    @functools.wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except Unauthorized:
            logger.debug("ignored %s from non-master %s", handler.__name__, request.sid)
            return None

    return wrapper


def register_socketio_handlers(
    socketio: SocketIO,
    registry: RoomRegistry,
    image_provider: ImageProvider,
    config=Config,
) -> None:
    tick_interval = float(getattr(config, "COUNTDOWN_TICK_SEC", 1.0))
    max_hint_length = int(getattr(config, "MAX_HINT_LENGTH", Config.MAX_HINT_LENGTH))

    def _broadcast_room_state(room: Room) -> None:
        socketio.emit(events.ROOM_UPDATED, service.room_snapshot(room), to=room.id)

    def _broadcast_result(room: Room, result: RoundResult) -> None:
        socketio.emit(events.ROUND_RESULT, events.round_result_payload(result), to=room.id)
        if result.is_game_over:
            socketio.emit(events.GAME_FINISHED, events.game_finished_payload(result), to=room.id)
        _broadcast_room_state(room)

    def _on_tick(room: Room, current: Round) -> bool:
        remaining = rounds.tick(room, current)
        if remaining is None:
            return False

        socketio.emit(events.TIME_UPDATE, {"remaining": max(0, remaining)}, to=room.id)
        if remaining > 0:
            return True

        result = rounds.resolve_round(room, current)
        if result is not None:
            socketio.emit(events.TIME_UP, {}, to=room.id)
            _broadcast_result(room, result)
        return False

    def _prepare_round(room: Room, current: Round) -> None:
        try:
            image = image_provider(current.combined_text)
            failure = None
        except ImageGenerationFailed as exc:
            image, failure = None, exc
        except Exception as exc:
            logger.exception("image provider crashed for room %s", room.id)
            image, failure = None, ImageGenerationFailed(str(exc))

        if failure is not None:
            logger.warning("room %s: image generation failed: %s", room.id, failure.message)
            if not rounds.abandon_round(room, current):
                return
            master_id = room.game_master_id
            if master_id:
                socketio.emit(
                    events.ERROR,
                    events.error_payload(failure.code, "Image generation failed"),
                    to=master_id,
                )
            _broadcast_room_state(room)
            return

        countdown = Countdown(socketio, tick_interval, lambda: _on_tick(room, current))
        if not rounds.start_answering(room, current, image, timer=countdown):
            logger.info("room %s: dropping image for a round that no longer exists", room.id)
            return

        with room.lock:
            show = events.show_image_payload(room, current)
        socketio.emit(events.SHOW_IMAGE, show, to=room.id)
        _broadcast_room_state(room)
        countdown.start()

    def _apply_departure(departure, leave_socket_room: bool = True) -> None:
        if departure is None:
            return
        if leave_socket_room:
            leave_room(departure.room.id)
        if not departure.room_closed:
            _broadcast_room_state(departure.room)

    def _leave_current_room(leave_socket_room: bool = True) -> None:
        _apply_departure(registry.remove_connection(request.sid), leave_socket_room)

    @socketio.on("connect")
    def on_connect(auth=None):
        logger.debug("connected: %s", request.sid)

    @socketio.on("room:create")
    def room_create(data):
        payload = _payload(data)
        name = str(payload.get("playerName", ""))

        try:
            room, departure = registry.open_room(request.sid, name)
        except GameError as exc:
            return {"roomId": None, "error": exc.code}

        _apply_departure(departure)
        join_room(room.id)
        _broadcast_room_state(room)
        return {"roomId": room.id}

    @socketio.on("room:join")
    def room_join(data):
        payload = _payload(data)
        room_id = str(payload.get("roomId", ""))
        name = str(payload.get("playerName", ""))

        try:
            room, departure = registry.move_to_room(request.sid, room_id, name)
        except GameError as exc:
            return {"success": False, "error": exc.code}

        _apply_departure(departure)
        join_room(room.id)
        _broadcast_room_state(room)
        return {"success": True}

    @socketio.on("room:leave")
    def room_leave(data=None):
        _leave_current_room()

    @socketio.on("room:get")
    def room_get(data=None):
        room = registry.room_for_connection(request.sid)
        if room is None:
            return {"room": None, "gameImage": None, "claimedCount": 0}

        game_image, claimed_count = service.round_image_state(room)
        return {
            "room": service.room_snapshot(room),
            "gameImage": game_image,
            "claimedCount": claimed_count,
        }

    @socketio.on("room:update-settings")
    @_drop_unauthorized
    def room_update_settings(data):
        settings = _payload(_payload(data).get("settings"))
        room = registry.room_for_connection(request.sid)
        if room is None:
            return

        ok = registry.update_settings(
            room,
            request.sid,
            target_score=settings.get("targetScore"),
            time_limit_seconds=settings.get("timeLimitSeconds"),
        )
        if ok:
            _broadcast_room_state(room)

    @socketio.on("game:set-keywords")
    @_drop_unauthorized
    def game_set_keywords(data):
        room = registry.room_for_connection(request.sid)
        if room is None:
            return

        current = rounds.submit_keywords(room, request.sid, _payload(data).get("keywords"))
        if current is None:
            return

        _broadcast_room_state(room)
        socketio.start_background_task(_prepare_round, room, current)

    @socketio.on("game:submit-answer")
    def game_submit_answer(data):
        room = registry.room_for_connection(request.sid)
        if room is None:
            return

        outcome = rounds.submit_answer(room, request.sid, _payload(data).get("answer"))
        if outcome is None:
            return

        emit(events.ANSWER_FEEDBACK, events.feedback_payload(outcome))
        if not outcome.claimed:
            return

        socketio.emit(events.ANSWER_CORRECT, events.answer_correct_payload(outcome), to=room.id)
        if outcome.result is not None:
            _broadcast_result(room, outcome.result)
        else:
            _broadcast_room_state(room)

    @socketio.on("game:send-hint")
    @_drop_unauthorized
    def game_send_hint(data):
        room = registry.room_for_connection(request.sid)
        if room is None:
            return

        hint = rounds.accept_hint(room, request.sid, _payload(data).get("text"), max_hint_length)
        if hint is None:
            return
        emit(events.HINT, {"text": hint}, to=room.id, include_self=False)

    @socketio.on("game:next-round")
    @_drop_unauthorized
    def game_next_round(data=None):
        room = registry.room_for_connection(request.sid)
        if room is None:
            return

        if not rounds.next_round(room, request.sid):
            return
        socketio.emit(events.NEXT_ROUND, to=room.id)
        _broadcast_room_state(room)

    @socketio.on("game:reset")
    @_drop_unauthorized
    def game_reset(data=None):
        room = registry.room_for_connection(request.sid)
        if room is None:
            return

        rounds.reset_game(room, request.sid)
        _broadcast_room_state(room)

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        logger.debug("disconnected: %s", request.sid)
        _leave_current_room(leave_socket_room=False)
