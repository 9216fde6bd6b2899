"""
SpendSense Error Handling

Every error carries a code and the field it concerns,
so embedding ledgers can log or surface it without parsing text.
"""
from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for embedding applications."""
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_CONFIG = "INVALID_CONFIG"


class SpendSenseError(Exception):
    """Base exception; subclasses set ``code``."""

    code: ErrorCode

    def __init__(self, message: str, detail: Optional[str] = None, **context: Any):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.context = context

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.detail:
            data["detail"] = self.detail
        if self.context:
            data["context"] = dict(self.context)
        return data


class InvalidInputError(SpendSenseError):
    """Input the engine refuses to learn from (e.g. a blank title)."""

    code = ErrorCode.INVALID_INPUT

    def __init__(self, field: str, detail: str):
        super().__init__(f"Invalid value for '{field}'", detail, field=field)


class ConfigError(SpendSenseError):
    """Threshold or limit outside its allowed range."""

    code = ErrorCode.INVALID_CONFIG

    def __init__(self, field: str, detail: str):
        super().__init__(f"Invalid configuration for '{field}'", detail, field=field)
