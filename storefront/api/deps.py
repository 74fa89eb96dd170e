import hmac

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from storefront.core.config import settings
from storefront.core.database import get_db
from storefront.core.encryption import EncryptionService
from storefront.core.security import decode_access_token
from storefront.models import User
from storefront.services.gateway import StripeGateway
from storefront.services.storage import CloudinaryStorage

security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Please sign in.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
        )
    return int(payload["sub"])


def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    if getattr(user, "is_banned", False):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been suspended. Please contact support.",
        )
    return user


def require_admin(
    x_admin_secret: str | None = Header(None, alias="X-Admin-Secret"),
) -> None:
    """Order admin API: X-Admin-Secret header, constant-time compare."""
    expected = (settings.admin_secret or "").strip()
    if not expected:
        raise HTTPException(status_code=503, detail="Admin API is not configured (ADMIN_SECRET missing).")
    if not hmac.compare_digest((x_admin_secret or "").encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=403, detail="Forbidden.")


# App-scoped collaborators, built in the lifespan (storefront.main) and overridable in tests


def get_encryption(request: Request) -> EncryptionService:
    encryption = getattr(request.app.state, "encryption", None)
    if encryption is None:
        raise HTTPException(status_code=503, detail="Encryption service is not initialised.")
    return encryption


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.gateway


def get_storage(request: Request) -> CloudinaryStorage:
    return request.app.state.storage
