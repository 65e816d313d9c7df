"""Error taxonomy raised by the relay services."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List


class RelayError(Exception):
    """Base class for client-facing relay errors."""

    message = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationFailed(RelayError):
    message = "Validation failed"

    def __init__(self, errors: Iterable[str], message: str | None = None) -> None:
        super().__init__(message)
        self.errors: List[str] = list(errors)

    def to_detail(self) -> Dict[str, Any]:
        return {"message": self.message, "errors": list(self.errors)}


class InvalidField(RelayError):
    message = "Invalid fields requested"

    def __init__(self, invalid: Iterable[str], valid: Iterable[str]) -> None:
        super().__init__()
        self.invalid_fields: List[str] = list(invalid)
        self.valid_fields: List[str] = list(valid)

    def to_detail(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "invalidFields": list(self.invalid_fields),
            "validFields": list(self.valid_fields),
        }


class InvalidType(RelayError):

    def __init__(self, field: str, label: str | None = None) -> None:
        super().__init__(f"{label or field} value must be boolean")
        self.field = field


class EmptyRequest(RelayError):
    message = "No valid data received"
