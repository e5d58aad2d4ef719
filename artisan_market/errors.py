"""Domain errors raised by the lifecycle and approval operations.

The HTTP layer maps each class onto a status code (see ``api.main``); the
Temporal activities turn them into non-retryable ``ApplicationError``s.
"""
from typing import Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict:
        return {"error": self.message}


class NotFoundError(MarketplaceError):
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(MarketplaceError):
    """Lists every offending field; nothing is written when this is raised."""

    status_code = 400

    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        errors = [
            {"field": ".".join(str(part) for part in error["loc"]) or "body", "message": error["msg"]}
            for error in exc.errors()
        ]
        return cls(errors)

    def to_dict(self) -> Dict:
        return {"error": self.message, "details": self.errors}


class ConflictError(MarketplaceError):
    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
