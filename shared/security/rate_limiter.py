import os
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from .jwt_handler import user_id_from_token

def user_id_or_ip(request: Request) -> str:
    """
    Key function for SlowAPI.
    Buckets authenticated callers by user id, everyone else by client IP.
    """
    auth_header = request.headers.get("Authorization")

    if auth_header and auth_header.startswith("Bearer "):
        user_id = user_id_from_token(auth_header.split(" ", 1)[1])
        if user_id is not None:
            return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
ORDER_RATE_LIMIT = os.getenv("ORDER_RATE_LIMIT", "10/minute")

limiter = Limiter(key_func=user_id_or_ip, enabled=RATE_LIMIT_ENABLED)
