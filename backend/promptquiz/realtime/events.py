from __future__ import annotations

from ..game.models import Room, Round
from ..game.rounds import AnswerOutcome, RoundResult


# server -> client
ROOM_UPDATED = "room:updated"
SHOW_IMAGE = "game:show-image"
TIME_UPDATE = "game:time-update"
TIME_UP = "game:time-up"
ANSWER_CORRECT = "game:answer-correct"
ANSWER_FEEDBACK = "game:answer-feedback"
ROUND_RESULT = "game:round-result"
GAME_FINISHED = "game:finished"
NEXT_ROUND = "game:next-round"
HINT = "game:hint"
ERROR = "error"

FEEDBACK_MESSAGES = {
    "claimed": "Correct!",
    "already_claimed": "Someone else already got that keyword.",
    "wrong": "Not quite...",
}


def show_image_payload(room: Room, current: Round) -> dict:
    return {
        "imageData": current.image.data_url() if current.image else None,
        "keywordCount": current.total_count,
        "timeLimit": room.settings.time_limit_seconds,
        "roundNumber": room.round_number,
    }


def feedback_payload(outcome: AnswerOutcome) -> dict:
    if not outcome.correct:
        message = FEEDBACK_MESSAGES["wrong"]
    elif outcome.already_claimed:
        message = FEEDBACK_MESSAGES["already_claimed"]
    else:
        message = FEEDBACK_MESSAGES["claimed"]
    return {
        "correct": outcome.correct,
        "alreadyClaimed": outcome.already_claimed,
        "message": message,
    }


def answer_correct_payload(outcome: AnswerOutcome) -> dict:
    return {
        "playerName": outcome.player_name,
        "claimedCount": outcome.claimed_count,
        "totalCount": outcome.total_count,
    }


def round_result_payload(result: RoundResult) -> dict:
    return {
        "keywords": result.keywords,
        "claimedBy": result.claimed_by,
        "scores": result.scores,
        "isGameOver": result.is_game_over,
        "winner": result.winner,
    }


def game_finished_payload(result: RoundResult) -> dict:
    return {"winner": result.winner, "scores": result.scores}


def error_payload(code: str, message: str) -> dict:
    return {"code": code, "message": message}
