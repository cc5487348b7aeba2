from __future__ import annotations


class GameError(Exception):
    code = "GameError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFound(GameError):
    code = "NotFound"


class GameAlreadyStarted(GameError):
    code = "GameAlreadyStarted"


class Unauthorized(GameError):
    code = "Unauthorized"


class ImageGenerationFailed(GameError):
    code = "ImageGenerationFailed"


class ValidationFailed(GameError):
    code = "ValidationFailed"
