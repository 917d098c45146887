"""
Error taxonomy shared by the engine, the store and the content generator.

Every error is scoped to a single request. The API layer turns them into
JSON responses using ``status_code``.
"""


class KidQuestError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(KidQuestError):
    status_code = 404


class InvalidArgument(KidQuestError):
    status_code = 400


class InvalidState(KidQuestError):
    status_code = 400


class Conflict(KidQuestError):
    """The parent document changed since it was loaded."""
    status_code = 409


class GenerationFailed(KidQuestError):
    """The content generator answered with something we cannot use."""
    status_code = 502


class Unavailable(KidQuestError):
    """The content generator could not be reached; retrying later may help."""
    status_code = 503
