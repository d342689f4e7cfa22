# chatorder/ordering/errors.py
from __future__ import annotations


class ChatError(Exception):
    """Base for errors the chat engine knows how to describe to a user."""

    code = "chat_error"
    recoverable = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InputError(ChatError):
    code = "input_error"


class Unresolved(ChatError):
    code = "unresolved"


class AuthenticationRequired(ChatError):
    code = "authentication_required"


class EmptyOrder(ChatError):
    code = "empty_order"


class ConcurrencyConflict(ChatError):
    code = "concurrency_conflict"


class PersistenceError(ChatError):
    # Surfaced to the caller; the session is left as it was so checkout can be retried.
    code = "persistence_error"
    recoverable = False
