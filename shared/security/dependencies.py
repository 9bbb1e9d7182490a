from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer, APIKeyHeader
from .jwt_handler import user_id_from_token
from .api_key import verify_api_key

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

# Back-office callers authenticate with this header instead of a JWT
api_key_header = APIKeyHeader(name="X-Internal-API-Key", auto_error=False)

async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> int:
    """Dependency to validate JWT and return the user id."""
    user_id = user_id_from_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Store in request state for downstream use (like rate limiting)
    request.state.user_id = user_id
    return user_id

async def get_optional_user(request: Request, token: str = Depends(oauth2_scheme)) -> int | None:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    user_id = user_id_from_token(token)
    if user_id is not None:
        request.state.user_id = user_id
    return user_id

async def verify_internal_api_key(api_key: str = Depends(api_key_header)) -> bool:
    """Dependency to validate back-office requests."""
    if not verify_api_key(api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing X-Internal-API-Key header"
        )
    return True
