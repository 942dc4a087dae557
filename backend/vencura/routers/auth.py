import logging
from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError as DBIntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from vencura.database import get_db
from vencura.core.deps import get_current_user
from vencura.core.security import hash_password, verify_password, create_access_token
from vencura.errors import ConflictError, UnauthorizedError, ValidationError
from vencura.models.user import User
from vencura.schemas.auth import RegisterRequest, LoginRequest, TokenResponse, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 8

def _normalize_email(email) -> str:
    return str(email).strip().lower()

@router.post("/register", status_code=201, response_model=UserOut)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)):
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    email = _normalize_email(body.email)
    existing = await db.scalar(select(User).where(User.email == email))
    if existing:
        raise ConflictError("User already exists")
    user = User(email=email, password_hash=hash_password(body.password))
    db.add(user)
    try:
        await db.commit()
    except DBIntegrityError:
        # Lost a race with a concurrent registration for the same email
        await db.rollback()
        raise ConflictError("User already exists")
    logger.info("[Auth] registered user %s", user.id)
    return UserOut(id=user.id, email=user.email)

@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)):
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")
    user = await db.scalar(select(User).where(User.email == _normalize_email(body.email)))
    if not user or not verify_password(body.password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")
    return TokenResponse(
        token=create_access_token(user.id),
        user=UserOut(id=user.id, email=user.email),
    )

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return UserOut(id=user.id, email=user.email)
