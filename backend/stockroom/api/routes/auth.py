"""Auth: register and login.

SECURITY FEATURES:
- Password hashing via passlib
- Password strength validation
- httpOnly, Secure, SameSite cookies
- Short token expiry
"""
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from stockroom.api.deps import get_db, get_current_user
from stockroom.core.audit import AuditLog
from stockroom.core.config import settings
from stockroom.core.exceptions import BusinessError
from stockroom.core.security import verify_password, get_password_hash, create_access_token, validate_password_strength
from stockroom.models.user import User
from stockroom.schemas.user import UserCreate, UserLogin, UserResponse, Token

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=UserResponse)
def register(data: UserCreate, request: Request, db: Session = Depends(get_db)):
    """
    Register new user with password strength validation.

    Password requirements come from settings: minimum length,
    at least one special character, at least one number.
    """
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        AuditLog.log_authentication("register", email, _client_ip(request), False, reason="Email already registered")
        raise BusinessError.bad_request("Email already registered")

    problem = validate_password_strength(data.password)
    if problem:
        raise BusinessError.bad_request(problem)

    user = User(email=email, name=data.name, hashed_password=get_password_hash(data.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    AuditLog.log_authentication("register", email, _client_ip(request), True)
    return user


@router.post("/login", response_model=Token)
def login(data: UserLogin, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Login; the token is returned and also set in an httpOnly cookie.

    SECURITY:
    - Generic error message to prevent user enumeration
    """
    email = data.email.lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(data.password, user.hashed_password):
        AuditLog.log_authentication("login", email, _client_ip(request), False, reason="Invalid credentials")
        raise BusinessError.unauthorized(f"Failed login for {email}")

    token = create_access_token(subject=str(user.id))

    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,  # seconds
        secure=settings.SECURE_COOKIES,  # HTTPS only in production
        httponly=True,  # Prevent JavaScript access (XSS protection)
        samesite=settings.SAME_SITE_COOKIE,  # CSRF protection (strict)
    )
    AuditLog.log_authentication("login", email, _client_ip(request), True)
    return Token(access_token=token)


@router.post("/logout")
def logout(request: Request, response: Response, current_user: User = Depends(get_current_user)):
    """
    Logout by clearing httpOnly cookie.
    """
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    AuditLog.log_authentication("logout", current_user.email, _client_ip(request), True)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return current_user
