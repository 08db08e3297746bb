"""
Authentication endpoints and the current-user dependency.

OTP delivery and Google sign-in are delegated to the external auth provider;
once it vouches for a user we issue our own bearer token.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dishfinder.config import get_settings
from dishfinder.database import get_db
from dishfinder.models.user import User
from dishfinder.services.auth_provider import (
    AuthProviderClient, AuthProviderError, ProviderUser, get_auth_provider
)
from dishfinder.services.invites import InviteError, check_invite_code
from dishfinder.services.rate_limiter import RateLimiter, format_reset_time, get_rate_limiter
from dishfinder.utils.validators import validate_phone

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter()
bearer_scheme = HTTPBearer(auto_error=False)


# --- Schemas ---

class SignupRequest(BaseModel):
    phone: str
    invite_code: str

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


class PhoneLoginRequest(BaseModel):
    phone: str

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


class EmailLoginRequest(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email address")
        return v


class VerifyOtpRequest(BaseModel):
    token: str
    phone: Optional[str] = None
    email: Optional[str] = None

    @model_validator(mode="after")
    def check_identity(self):
        if not self.phone and not self.email:
            raise ValueError("Phone number or email is required.")
        if self.phone:
            self.phone = validate_phone(self.phone)
        if self.email:
            self.email = self.email.strip().lower()
        return self


class GoogleSignInRequest(BaseModel):
    invite_code: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    has_profile: bool
    user_id: int


class UserResponse(BaseModel):
    id: int
    phone: Optional[str]
    email: Optional[str]
    name: Optional[str]
    city: Optional[str]
    profile_picture_url: Optional[str]
    has_profile: bool

    class Config:
        from_attributes = True


# --- Tokens ---

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user, or 401"""
    unauthorized = HTTPException(
        status_code=401,
        detail="You must be logged in.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise unauthorized

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise unauthorized
    return user


# --- Helpers ---

async def _enforce_otp_limit(limiter: RateLimiter, identifier: str) -> None:
    verdict = await limiter.check(
        f"otp:{identifier}", settings.OTP_RATE_LIMIT_MAX, settings.OTP_RATE_LIMIT_WINDOW_SECONDS
    )
    if not verdict.allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Too many OTP requests. Please try again in {format_reset_time(verdict.reset_at)}.",
        )


async def _send_otp(provider: AuthProviderClient, phone: Optional[str] = None, email: Optional[str] = None) -> None:
    try:
        await provider.send_otp(phone=phone, email=email)
    except AuthProviderError as e:
        logger.error(f"OTP send failed: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)


async def _upsert_user(db: AsyncSession, provider_user: ProviderUser) -> User:
    result = await db.execute(select(User).where(User.auth_provider_id == provider_user.id))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(
            auth_provider_id=provider_user.id,
            phone=provider_user.phone,
            email=provider_user.email,
        )
        db.add(user)
        logger.info(f"Created local user for provider id {provider_user.id}")
    else:
        user.phone = user.phone or provider_user.phone
        user.email = user.email or provider_user.email
    await db.commit()
    await db.refresh(user)
    return user


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(data={"sub": str(user.id)}),
        has_profile=user.has_profile,
        user_id=user.id,
    )


# --- Endpoints ---

@router.post("/signup")
async def signup(
    data: SignupRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProviderClient = Depends(get_auth_provider),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Check the invite code, then send a signup OTP"""
    try:
        await check_invite_code(db, data.invite_code)
    except InviteError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    await _enforce_otp_limit(limiter, data.phone)
    await _send_otp(provider, phone=data.phone)
    return {"message": "OTP sent successfully. Please check your phone."}


@router.post("/login")
async def login(
    data: PhoneLoginRequest,
    provider: AuthProviderClient = Depends(get_auth_provider),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Send a login OTP (no invite code needed)"""
    await _enforce_otp_limit(limiter, data.phone)
    await _send_otp(provider, phone=data.phone)
    return {"message": "OTP sent successfully. Please check your phone."}


@router.post("/login/email")
async def login_email(
    data: EmailLoginRequest,
    provider: AuthProviderClient = Depends(get_auth_provider),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    await _enforce_otp_limit(limiter, data.email)
    await _send_otp(provider, email=data.email)
    return {"message": "OTP sent successfully. Please check your email."}


@router.post("/verify-otp", response_model=TokenResponse)
async def verify_otp(
    data: VerifyOtpRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProviderClient = Depends(get_auth_provider),
):
    """Verify an OTP with the provider and issue an access token"""
    try:
        provider_user = await provider.verify_otp(data.token, phone=data.phone, email=data.email)
    except AuthProviderError as e:
        logger.warning(f"OTP verification failed: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    user = await _upsert_user(db, provider_user)
    return _token_response(user)


@router.post("/google")
async def google_sign_in(
    data: GoogleSignInRequest,
    db: AsyncSession = Depends(get_db),
    provider: AuthProviderClient = Depends(get_auth_provider),
):
    """Check the invite code before handing the client the OAuth URL"""
    try:
        await check_invite_code(db, data.invite_code)
    except InviteError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return {
        "url": provider.oauth_url("google", settings.OAUTH_REDIRECT_URL),
        "invite_code": data.invite_code,
    }


@router.get("/callback", response_model=TokenResponse)
async def oauth_callback(
    code: str = Query(...),
    db: AsyncSession = Depends(get_db),
    provider: AuthProviderClient = Depends(get_auth_provider),
):
    try:
        provider_user = await provider.exchange_code(code)
    except AuthProviderError as e:
        logger.warning(f"OAuth code exchange failed: {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    user = await _upsert_user(db, provider_user)
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user
