from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_user
from conduit.models import User
from conduit.schemas import UserCreateRequest, UserEnvelope, UserLoginRequest, UserUpdateRequest
from conduit.services import user_service

router = APIRouter(prefix="/api", tags=["users"])

_DUPLICATE_USER_DETAIL = "A user with this username or email already exists"


@router.post("/users", status_code=201, response_model=UserEnvelope)
async def register(payload: UserCreateRequest, db: AsyncSession = Depends(get_db)):
    try:
        user = await user_service.register_user(db, payload.user)
    except IntegrityError:
        raise HTTPException(status_code=409, detail=_DUPLICATE_USER_DETAIL)
    return {"user": user}


@router.post("/users/login", response_model=UserEnvelope)
async def login(payload: UserLoginRequest, db: AsyncSession = Depends(get_db)):
    user = await user_service.login_user(db, payload.user)
    return {"user": user}


@router.get("/user", response_model=UserEnvelope)
async def current_user(user: User = Depends(get_current_user)):
    return {"user": user_service.user_to_dict(user)}


@router.put("/user", response_model=UserEnvelope)
async def update_current_user(
    payload: UserUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        updated = await user_service.update_user(db, user.id, payload.user)
    except IntegrityError:
        raise HTTPException(status_code=409, detail=_DUPLICATE_USER_DETAIL)
    return {"user": updated}
