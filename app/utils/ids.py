"""Identifier helpers"""
import uuid
from typing import Union

from app.core.exceptions import NotFoundError


def parse_uuid(value: Union[str, uuid.UUID], entity: str = "Resource") -> uuid.UUID:
    """
    Convert a string ID to UUID

    A malformed ID can never match a stored record, so it is reported
    as a missing entity rather than a validation failure.
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        raise NotFoundError(f"{entity} not found")
