"""Error taxonomy shared by the quiz services and the HTTP layer."""


class QuizError(Exception):
    """Base class for quiz errors."""


class ValidationError(QuizError):
    """Bad player input (empty or taken name, malformed body). Shown to the user."""


class StoreError(QuizError):
    """The score store could not be reached or rejected the request."""


class StateError(QuizError):
    """An action arrived while the session was not in a phase that allows it."""
