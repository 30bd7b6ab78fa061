"""Exception hierarchy for the relay pipeline."""

from typing import Optional


class RelayError(Exception):
    """Base exception for relay errors."""
    pass


class ConfigurationMissingError(RelayError):
    """Raised when no active delivery configuration exists."""

    def __init__(self, message: str = "No active delivery configuration found"):
        super().__init__(message)


class BackendError(RelayError):
    """Raised when the completion backend fails or returns a malformed reply."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendTimeoutError(BackendError):
    """Raised when a backend call exceeds the configured request timeout."""
    pass


class NotFoundError(RelayError):
    """Base class for lookups of unknown records."""
    pass


class FailedMessageNotFoundError(NotFoundError):
    """Raised when a failed message id is unknown."""

    def __init__(self, failed_message_id):
        super().__init__(f"Failed message not found: {failed_message_id}")
        self.failed_message_id = failed_message_id


class RequestTaskNotFoundError(NotFoundError):
    """Raised when a request task id is unknown."""

    def __init__(self, task_id):
        super().__init__(f"Request task not found: {task_id}")
        self.task_id = task_id


class ConversationNotFoundError(NotFoundError):
    """Raised when a conversation id is unknown."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class RetryBudgetExhaustedError(RelayError):
    """Raised when a failed message has used up its retry budget."""

    def __init__(self, failed_message_id, max_retries: int):
        super().__init__(
            f"Failed message {failed_message_id} has reached the retry limit ({max_retries})"
        )
        self.failed_message_id = failed_message_id
        self.max_retries = max_retries


class PersistenceError(RelayError):
    """Raised when a state transition could not be written to the store."""
    pass
