"""Service-layer error taxonomy

Services raise these; the API layer renders them through a single
exception handler registered in app.main.
"""
from typing import Any, Dict, List, Optional


class MarketplaceError(Exception):
    """Base class for errors returned to the immediate caller"""

    status_code = 400

    def __init__(self, detail: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(detail)
        self.detail = detail
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.detail, "type": type(self).__name__}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(MarketplaceError):
    """Malformed or out-of-range input"""

    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Convert a pydantic ValidationError into field-level detail"""
        errors = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        detail = ", ".join(f"{e['field']}: {e['message']}" for e in errors) or "Invalid input"
        return cls(detail, errors=errors)


class NotFoundError(MarketplaceError):
    """Referenced entity does not exist"""

    status_code = 404


class AuthorizationError(MarketplaceError):
    """Actor lacks rights over the resource"""

    status_code = 403


class InvalidStateError(MarketplaceError):
    """Operation not valid for the current lifecycle state"""

    status_code = 409


class ConflictError(MarketplaceError):
    """Uniqueness violation"""

    status_code = 409
