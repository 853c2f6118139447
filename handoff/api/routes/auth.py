from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from handoff.api.deps import get_current_user, get_db
from handoff.models.user import User
from handoff.schemas.auth import LoginRequest, RefreshRequest, RegisterRequest, Token, UserRead
from handoff.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, session: Session = Depends(get_db)) -> Token:
    try:
        return AuthService(session).register(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, session: Session = Depends(get_db)) -> Token:
    try:
        return AuthService(session).authenticate(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@router.post("/refresh", response_model=Token)
def refresh(payload: RefreshRequest, session: Session = Depends(get_db)) -> Token:
    try:
        return AuthService(session).refresh(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)) -> UserRead:
    return UserRead(id=current_user.id, email=current_user.email, is_active=current_user.is_active)
