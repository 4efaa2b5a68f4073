"""Application exception hierarchy mapped to HTTP responses."""
from fastapi import HTTPException, status


class MentisException(Exception):
    """Base exception for all application errors."""
    pass


class ConversationNotFoundException(MentisException):
    """Raised when a conversation is not found."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation {self.conversation_id} not found"
        )


class StudentNotFoundException(MentisException):
    """Raised when a student does not exist in the requested organization."""

    def __init__(self, student_id: str, organization_id: str | None = None):
        self.student_id = student_id
        self.organization_id = organization_id
        scope = f" in organization {organization_id}" if organization_id else ""
        super().__init__(f"Student {student_id} not found{scope}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alumno no encontrado"
        )


class LLMProviderException(MentisException):
    """Raised when the LLM provider fails outside of a tutor turn."""

    def __init__(self, original_error: Exception):
        self.original_error = original_error
        super().__init__(f"LLM provider error: {str(original_error)}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servicio de IA no disponible temporalmente"
        )


class DatabaseException(MentisException):
    """Raised when database operations fail."""

    def __init__(self, operation: str, original_error: Exception):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Database {operation} failed: {str(original_error)}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database operation failed"
        )


class StaleStateError(MentisException):
    """Raised when an optimistic locking conflict is detected during a conversation update."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(self)
        )
