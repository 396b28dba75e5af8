from typing import Union
from uuid import UUID

from app.utils.errors import NotFoundError


def to_id_or_not_found(
    value: Union[str, UUID],
    message: str = "Resource not found",
    error_code: str = "NOT_FOUND",
) -> str:
    """Canonical string form of an id; a malformed id cannot exist, so it is a 404."""
    try:
        return str(value if isinstance(value, UUID) else UUID(str(value)))
    except ValueError:
        raise NotFoundError(message, error_code)
