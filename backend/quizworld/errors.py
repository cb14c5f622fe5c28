"""Error taxonomy shared by the quiz services and the transport layers.

Validation and auth errors carry a message that is safe to show the caller
verbatim. Upstream and storage errors are logged where they happen and are
reported to callers with a generic message.
"""


class QuizError(Exception):
    pass


class ValidationError(QuizError):
    pass


class AuthError(QuizError):
    pass


class NotFound(QuizError):
    pass


class UpstreamUnavailable(QuizError):
    pass


class StorageError(QuizError):
    pass


class SessionError(QuizError):
    pass


class TimerStateError(QuizError):
    pass
