"""Shared exceptions for service layer operations."""


class InvalidQueryError(Exception):
    """Raised when find text is empty or whitespace-only. No scan is performed."""

    def __init__(self, message: str = "Find text must not be empty") -> None:
        super().__init__(message)


class ConversationNotFoundError(Exception):
    """Raised when a conversation does not exist in the content store."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class ContentFetchFailedError(Exception):
    """
    Raised when conversation content cannot be fetched or normalized.

    Propagated to the caller as a failed search/replace; no partial results are
    returned.
    """

    def __init__(self, conversation_id: str, message: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Failed to fetch content for conversation {conversation_id}: {message}")


class ReserializationFailedError(Exception):
    """
    Raised when a field path no longer resolves against an entity's content.

    Never escapes a replace call: the affected entity is skipped and reported.
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Cannot write back field '{path}': {message}")


class WriteBackFailedError(Exception):
    """
    Raised when the content store fails to persist one entity.

    Never escapes a replace call: the affected entity is reported as failed and
    entities written before it are unaffected.
    """

    def __init__(self, entity: str, message: str) -> None:
        self.entity = entity
        super().__init__(f"Failed to write {entity}: {message}")
