from fastapi import Request

from services.common.http_errors import ValidationError
from services.common.logging_config import user_id_var


def get_owner_id(request: Request) -> str:
    """
    Extract the owner id from request headers.

    The gateway authenticates the owner and forwards their identity in the
    X-User-Id header.
    """
    owner_id = request.headers.get("X-User-Id")
    if not owner_id or not owner_id.strip():
        raise ValidationError("Missing X-User-Id header", field="X-User-Id")
    owner_id = owner_id.strip()
    user_id_var.set(owner_id)
    return owner_id
