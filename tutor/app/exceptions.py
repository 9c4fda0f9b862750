"""Custom exceptions for the tutor application."""

import math


class TutorException(Exception):
    """Base class for tutor exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Error interno del servidor"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> dict:
        """Convert to the error payload returned by the chat endpoint."""
        return {
            "statusCode": self.status_code,
            "message": self.message,
            "messageType": "error",
        }


class AuthenticationError(TutorException):
    """Raised when the bearer token is missing, invalid or expired.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, detail: str = "No autorizado"):
        self.detail = detail
        super().__init__(detail)


class NotFoundError(TutorException):
    """Raised when a referenced record does not exist.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404

    def __init__(self, message: str = "Recurso no encontrado"):
        super().__init__(message)


class StudentNotFoundError(NotFoundError):
    """Raised when the authenticated user has no student record."""

    def __init__(self, student_id: int | str | None = None):
        self.student_id = student_id
        super().__init__("Estudiante no encontrado")


class VideoNotFoundError(NotFoundError):
    """Raised when the video search returns no results."""

    def __init__(self, query: str = ""):
        self.query = query
        super().__init__("No se encontraron videos")


class RateLimitedError(TutorException):
    """Raised when admission control denies a request.

    Exception data includes the wait time until the next free slot.
    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, wait_time_seconds: float = 0.0, detail: str | None = None):
        self.wait_time_ms = int(round(max(0.0, wait_time_seconds) * 1000))
        message = detail or (
            "Has alcanzado el límite de solicitudes. Por favor espera "
            f"{math.ceil(self.wait_time_ms / 1000)} segundos."
        )
        super().__init__(message)

    def to_response(self) -> dict:
        payload = super().to_response()
        payload["waitTime"] = self.wait_time_ms
        return payload


class ProviderUnavailableError(TutorException):
    """Raised when every credential/model combination has failed.

    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503

    def __init__(
        self,
        detail: str = (
            "El servicio de IA no está disponible en este momento. "
            "Por favor, intenta de nuevo más tarde."
        ),
    ):
        super().__init__(detail)


class VideoNotConfiguredError(TutorException):
    """Raised when video search is requested without a YouTube API key."""
    status_code = 503

    def __init__(self, detail: str = "YouTube API Key no configurada"):
        super().__init__(detail)


class VideoSearchError(TutorException):
    """Raised when the video search request itself fails.

    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503

    def __init__(self, detail: str = "Error al buscar videos"):
        super().__init__(detail)
