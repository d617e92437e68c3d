import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import store
from config import settings

logger = logging.getLogger(__name__)

USER_TYPES = ("parent", "healthcare_provider", "admin")
SELF_REGISTER_TYPES = ("parent", "healthcare_provider")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PBKDF2_ROUNDS = 120_000

router = APIRouter(prefix="/api/auth", tags=["auth"])

# ------------------ passwords + tokens ------------------

def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), PBKDF2_ROUNDS)
    return f"{salt}${digest.hex()}"

def verify_password(password: str, stored: str | None) -> bool:
    if not stored or "$" not in stored:
        return False
    salt, expected = stored.split("$", 1)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("ascii"), PBKDF2_ROUNDS)
    return hmac.compare_digest(digest.hex(), expected)

def issue_token(user: dict) -> str:
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(user["_id"]),
        "userType": user["userType"],
        "iat": issued,
        "exp": issued + timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])

# ------------------ dependencies ------------------

bearer = HTTPBearer(auto_error=False)

def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)

def current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Database = Depends(store.get_db),
) -> dict:
    if credentials is None:
        raise _unauthorized("Token is missing or invalid")

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as exc:
        logger.warning("Rejected token: %s", exc)
        raise _unauthorized("Invalid token")

    try:
        user = store.find_user(db, payload.get("sub"))
    except store.InvalidIdError:
        raise _unauthorized("Invalid token")

    if not user:
        raise _unauthorized("User not found")
    if not user.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return user

def require_user_type(*allowed: str):
    def dependency(user: dict = Depends(current_user)) -> dict:
        if user.get("userType") not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied for this user type",
            )
        return user
    return dependency

# userType -> may this user see this child?
CHILD_ACCESS = {
    "parent": lambda user, child: child.get("parent") == user["_id"],
    "healthcare_provider": lambda user, child: True,
    "admin": lambda user, child: True,
}

def child_for_user(db: Database, user: dict, child_id: str) -> dict:
    child = store.find_child(db, child_id)
    if not child:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Child not found")

    check = CHILD_ACCESS.get(user.get("userType"))
    if check is None or not check(user, child):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this child")
    return child

def provider_for_user(db: Database, user: dict, provider_id: str) -> dict:
    """Providers reach only their own account; admins reach any provider."""
    if user.get("userType") != "admin" and str(user["_id"]) != provider_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this provider's records")

    provider = store.find_user(db, provider_id)
    if not provider or provider.get("userType") != "healthcare_provider":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")
    return provider

# ------------------ routes ------------------

class ProviderDetails(BaseModel):
    licenseNumber: str | None = None
    specialization: str | None = None
    hospital: str | None = None

class RegisterRequest(BaseModel):
    fullName: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=8)
    userType: str = "parent"
    mobile: str | None = None
    healthcareProvider: ProviderDetails | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_RE.match(value):
            raise ValueError("Valid email is required")
        return value

    @field_validator("userType")
    @classmethod
    def check_user_type(cls, value: str) -> str:
        if value not in USER_TYPES:
            raise ValueError(f"userType must be one of {', '.join(USER_TYPES)}")
        return value

class LoginRequest(BaseModel):
    email: str
    password: str

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, db: Database = Depends(store.get_db)):
    if body.userType not in SELF_REGISTER_TYPES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator accounts cannot be self-registered",
        )

    data = body.model_dump(exclude={"password"}, exclude_none=True)
    data["passwordHash"] = hash_password(body.password)
    try:
        user = store.create_user(db, data)
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered")

    return {
        "success": True,
        "message": "Registration successful",
        "data": {"token": issue_token(user), "user": store.serialize(user)},
    }

@router.post("/login")
def login(body: LoginRequest, db: Database = Depends(store.get_db)):
    user = store.find_user_by_email(db, body.email)
    if not user or not verify_password(body.password, user.get("passwordHash")):
        raise _unauthorized("Invalid email or password")
    if not user.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")

    logger.info("User %s logged in", user["_id"])
    return {
        "success": True,
        "data": {"token": issue_token(user), "user": store.serialize(user)},
    }
