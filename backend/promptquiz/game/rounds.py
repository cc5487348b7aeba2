"""Round state machine.

Every function here takes the room lock for its whole body, so a claim,
a countdown tick and a resolution never interleave within one room. The
functions return plain values; the realtime layer turns them into events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..config import Config
from .errors import Unauthorized
from .models import Cancellable, Claim, GeneratedImage, Player, Room, Round, normalize_answer
from .service import player_public


logger = logging.getLogger(__name__)


@dataclass
class RoundResult:
    keywords: list[str]
    claimed_by: list[dict]
    scores: list[dict]
    winner: dict | None = None

    @property
    def is_game_over(self) -> bool:
        return self.winner is not None


@dataclass
class AnswerOutcome:
    correct: bool
    already_claimed: bool = False
    player_name: str = ""
    claimed_count: int = 0
    total_count: int = 0
    result: RoundResult | None = field(default=None)

    @property
    def claimed(self) -> bool:
        return self.correct and not self.already_claimed


def _require_master(room: Room, connection_id: str) -> None:
    if not room.is_game_master(connection_id):
        raise Unauthorized("only_game_master")


def _is_live(room: Room, current: Round | None, state: str) -> bool:
    if room.active_round is None or room.state != state:
        return False
    return current is None or room.active_round is current


def submit_keywords(room: Room, connection_id: str, keywords) -> Round | None:
    with room.lock:
        _require_master(room, connection_id)
        if room.state != "waiting":
            return None
        if not isinstance(keywords, list):
            return None

        valid = [k.strip() for k in keywords if isinstance(k, str) and k.strip()]
        if not valid:
            return None

        room.round_number += 1
        room.active_round = Round(keywords=valid)
        room.state = "preparing"
        logger.info("room %s round %d preparing (%d keywords)", room.id, room.round_number, len(valid))
        return room.active_round


def start_answering(
    room: Room,
    current: Round,
    image: GeneratedImage,
    timer: Cancellable | None = None,
) -> bool:
    with room.lock:
        if not _is_live(room, current, "preparing"):
            return False

        current.image = image
        current.countdown_remaining = room.settings.time_limit_seconds
        current.timer = timer
        room.state = "answering"
        logger.info("room %s round %d answering", room.id, room.round_number)
        return True


def abandon_round(room: Room, current: Round) -> bool:
    """Undo a round whose image could not be produced."""
    with room.lock:
        if not _is_live(room, current, "preparing"):
            return False

        current.cancel_timer()
        room.active_round = None
        room.round_number = max(0, room.round_number - 1)
        room.state = "waiting"
        return True


def tick(room: Room, current: Round) -> int | None:
    with room.lock:
        if not _is_live(room, current, "answering"):
            return None
        current.countdown_remaining -= 1
        return current.countdown_remaining


def _resolve_locked(room: Room) -> RoundResult:
    current = room.active_round
    current.cancel_timer()

    claimed_by = []
    for kw in current.keywords:
        slot = current.slot_for(kw)
        claim = current.claims.get(slot) if slot is not None else None
        claimed_by.append({"keyword": kw, "playerName": claim.player_name if claim else None})

    # sorted() is stable, so equal scores keep join order.
    ranked = sorted(
        (p for p in room.members.values() if not p.is_game_master),
        key=lambda p: p.score,
        reverse=True,
    )
    scores = [player_public(p) for p in ranked]
    winner = next((s for s in scores if s["score"] >= room.settings.target_score), None)

    room.state = "finished" if winner is not None else "result"
    logger.info(
        "room %s round %d resolved: %d/%d claimed, winner=%s",
        room.id,
        room.round_number,
        current.claimed_count,
        current.total_count,
        winner["name"] if winner else None,
    )
    return RoundResult(keywords=list(current.keywords), claimed_by=claimed_by, scores=scores, winner=winner)


def resolve_round(room: Room, current: Round | None = None) -> RoundResult | None:
    """Resolve the answering round once; later calls return None."""
    with room.lock:
        if not _is_live(room, current, "answering"):
            return None
        return _resolve_locked(room)


def submit_answer(room: Room, connection_id: str, text) -> AnswerOutcome | None:
    with room.lock:
        current = room.active_round
        if current is None or room.state != "answering":
            return None
        if room.is_game_master(connection_id):
            return None
        player: Player | None = room.members.get(connection_id)
        if player is None:
            return None

        answer = normalize_answer(text if isinstance(text, str) else "")
        if not answer:
            return None

        matched = next((kw for kw in current.keywords if normalize_answer(kw) == answer), None)
        if matched is None:
            return AnswerOutcome(correct=False, player_name=player.name)

        slot = current.slot_for(matched)
        if slot in current.claims:
            return AnswerOutcome(
                correct=True,
                already_claimed=True,
                player_name=player.name,
                claimed_count=current.claimed_count,
                total_count=current.total_count,
            )

        current.claims[slot] = Claim(player_id=player.id, player_name=player.name, order=current.claimed_count)
        player.score += 1

        outcome = AnswerOutcome(
            correct=True,
            player_name=player.name,
            claimed_count=current.claimed_count,
            total_count=current.total_count,
        )
        # A decided game ends the round as well as a fully claimed board.
        if current.all_claimed() or player.score >= room.settings.target_score:
            outcome.result = _resolve_locked(room)
        return outcome


def next_round(room: Room, connection_id: str) -> bool:
    with room.lock:
        _require_master(room, connection_id)
        if room.state != "result":
            return False
        if room.active_round is not None:
            room.active_round.cancel_timer()
        room.active_round = None
        room.state = "waiting"
        return True


def reset_game(room: Room, connection_id: str) -> bool:
    with room.lock:
        _require_master(room, connection_id)
        for p in room.members.values():
            p.score = 0
        if room.active_round is not None:
            room.active_round.cancel_timer()
        room.active_round = None
        room.round_number = 0
        room.state = "waiting"
        logger.info("room %s reset", room.id)
        return True


def accept_hint(room: Room, connection_id: str, text, max_length: int | None = None) -> str | None:
    with room.lock:
        _require_master(room, connection_id)
        if room.state != "answering":
            return None
        hint = (text if isinstance(text, str) else "").strip()
        if not hint or len(hint) > (max_length or Config.MAX_HINT_LENGTH):
            return None
        return hint
