# ============================================================================
# FILE: appointease/api/dependencies.py
# Authentication dependencies for business JWTs, customer tokens and webhooks
# ============================================================================
import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.config.database import get_db
from appointease.config.settings import get_settings
from appointease.models.business import CustomerAccessToken
from appointease.schemas.scheduling import BookingIdentity
from appointease.services.notification.notification_service import NotificationService

logger = logging.getLogger(__name__)

# ============================================================================
# Security Schemes
# ============================================================================

# JWT security for business users
jwt_security = HTTPBearer(
    scheme_name="JWT Bearer Token",
    description="Enter your JWT access token"
)


# ============================================================================
# JWT Token Functions
# ============================================================================

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Tokens are normally issued by the identity service; this is used by
    local tooling and tests that need to act as a business user.

    Args:
        data: Dictionary with claims (should include 'sub' and 'business_id')
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    settings = get_settings()
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access"
    })

    return jwt.encode(
        to_encode,
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )


def verify_access_token(token: str) -> dict:
    """
    Verify and decode a JWT access token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Could not validate credentials: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


# ============================================================================
# Identity Dependencies
# ============================================================================

async def get_business_identity(
        credentials: HTTPAuthorizationCredentials = Depends(jwt_security)
) -> BookingIdentity:
    """
    Dependency resolving a business user from a JWT access token.

    Usage in routes:
        @router.get("/appointments")
        async def list_appointments(identity: BookingIdentity = Depends(get_business_identity)):
            ...

    Raises:
        HTTPException 401: token invalid or missing the business_id claim
    """
    payload = verify_access_token(credentials.credentials)

    business_id_str: Optional[str] = payload.get("business_id")
    if business_id_str is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not associated with a business",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        business_id = UUID(business_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid business ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return BookingIdentity(
        business_id=business_id,
        user_id=payload.get("sub"),
        actor="business",
    )


async def get_customer_identity(
        x_customer_token: Optional[str] = Header(None, alias="X-Customer-Token"),
        db: AsyncSession = Depends(get_db)
) -> BookingIdentity:
    """
    Dependency resolving a customer from the opaque access token the
    identity service emailed them.

    Raises:
        HTTPException 401: token missing, unknown or expired
    """
    if not x_customer_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Customer token required",
        )

    result = await db.execute(
        select(CustomerAccessToken).where(CustomerAccessToken.token == x_customer_token)
    )
    access_token = result.scalars().first()

    if not access_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid customer token",
        )

    expires_at = access_token.expires_at
    if expires_at.tzinfo is None:
        # SQLite hands back naive values
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Customer token expired",
        )

    return BookingIdentity(
        business_id=access_token.business_id,
        customer_id=access_token.customer_id,
        actor="customer",
    )


async def verify_payment_webhook(
        x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret")
) -> None:
    """Shared-secret check for payment gateway callbacks"""
    expected = get_settings().PAYMENT_WEBHOOK_SECRET
    if not expected:
        logger.error("PAYMENT_WEBHOOK_SECRET is not configured, rejecting payment callback")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Payment webhook not configured",
        )

    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        logger.warning("Payment callback rejected: bad webhook secret")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret",
        )


def get_notifier(request: Request) -> NotificationService:
    """Notification service tagged with the request's correlation ID"""
    return NotificationService(correlation_id=getattr(request.state, "correlation_id", None))
