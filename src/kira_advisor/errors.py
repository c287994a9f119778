"""Error taxonomy shared by the receipt and chat paths."""

from typing import Any


class KiraError(Exception):
    """Base exception for advisor errors."""

    code = "kira_error"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the structured error object returned to callers."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class ValidationError(KiraError):
    """A required request field is missing or malformed."""

    code = "validation_error"


class NotFoundError(KiraError):
    """A referenced user, asset, or attachment does not exist."""

    code = "not_found"


class IncompleteDataError(KiraError):
    """A record exists but lacks a field the computation needs."""

    code = "incomplete_data"


class ExternalServiceError(KiraError):
    """An extraction, valuation, language-model, or store call failed."""

    code = "external_service_error"

    def __init__(self, service: str, message: str, details: Any = None):
        super().__init__(f"{service}: {message}", details=details)
        self.service = service
