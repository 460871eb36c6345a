"""Exceptions raised by the search index and the tool boundary."""


class MemexSearchError(Exception):
    """Base class for memex-search errors."""


class IndexNotInitializedError(MemexSearchError):
    """A query was issued before any index build completed."""

    def __init__(self, message: str = "Search index not initialized") -> None:
        super().__init__(message)


class IndexBuildError(MemexSearchError):
    """The index build aborted; the whole build must be retried."""


class ConversationNotFoundError(MemexSearchError):
    """No conversation matches the requested conversation_id."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class ProjectNotFoundError(MemexSearchError):
    """The requested project is not a directory in the workspace."""


class UnknownToolError(MemexSearchError):
    """A tool name that the server does not provide."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name
