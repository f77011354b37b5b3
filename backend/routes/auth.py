from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from config.env import ADMIN_EMAIL
from database import get_store
from models.user import User, UserCreate, UserRole
from utils.jwt import create_access_token
from utils.security import get_current_user
from utils.store import CoordinationStore

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# ======================
# Schemas
# ======================

class TokenRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User


# ======================
# Signup
# ======================

@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(data: UserCreate, store: CoordinationStore = Depends(get_store)):
    if not data.password:
        raise HTTPException(400, "Password is required")

    is_bootstrap_admin = ADMIN_EMAIL is not None and data.email.lower() == ADMIN_EMAIL
    if data.role == UserRole.ADMIN and not is_bootstrap_admin:
        raise HTTPException(403, "Admin accounts cannot self-register")
    if is_bootstrap_admin:
        data = data.model_copy(update={"role": UserRole.ADMIN, "subtype": None})

    user = await store.create_user(data)
    return TokenResponse(access_token=create_access_token(user.id, user.role.value), user=user)


# ======================
# Login
# ======================

@router.post("/token", response_model=TokenResponse)
async def login(data: TokenRequest, store: CoordinationStore = Depends(get_store)):
    user = await store.authenticate(data.email, data.password)
    return TokenResponse(access_token=create_access_token(user.id, user.role.value), user=user)


@router.get("/me", response_model=User)
async def me(user: User = Depends(get_current_user)):
    return user
