from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from messbook.core.config import settings
from messbook.db.mongo import get_db
from messbook.repositories.user_repo import UserRepository
from messbook.models.user import UserResponse

bearer_scheme = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Sign a token for a directory user. Used by tooling and tests."""
    issued = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": user_id,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp())
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def user_id_from_token(token: str) -> str:
    """Subject of a valid token; 401 for anything else."""
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid token")

    subject = claims.get("sub")
    if not subject:
        raise _unauthorized("Invalid token")
    return subject


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db = Depends(get_db)
) -> UserResponse:
    """Resolve the bearer token to an active member of the household."""
    user = await UserRepository(db).get_by_id(user_id_from_token(credentials.credentials))
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    return UserResponse(id=user.id, name=user.name, role=user.role, is_active=user.is_active)


async def require_admin(current_user: UserResponse = Depends(get_current_user)) -> UserResponse:
    """Let only the mess manager through."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
