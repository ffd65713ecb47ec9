from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from datetime import timedelta
from railstay.database import get_db
from railstay.auth.schemas import UserCreate, User, LoginRequest, AuthResponse, PersonalInfoCreate, PersonalInfo
from railstay.auth.service import UserService
from railstay.auth.utils import create_access_token
from railstay.auth.dependencies import get_current_user
from railstay.config import settings

router = APIRouter()

def _to_user_schema(db_user) -> User:
    return User(
        id=db_user.id,
        username=db_user.username,
        has_payment_password=db_user.hashed_payment_password is not None,
        created_at=db_user.created_at
    )

@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
def register_user(user: UserCreate, db: Session = Depends(get_db)):
    """Register a new user"""
    try:
        db_user = UserService.create_user(db=db, user=user)
        return _to_user_schema(db_user)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.post("/login", response_model=AuthResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """Exchange credentials for a session token"""
    user = UserService.authenticate_user(db, login_data.username, login_data.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": str(user.id)}, expires_delta=access_token_expires
    )
    return AuthResponse(
        access_token=access_token,
        token_type="bearer",
        user=_to_user_schema(user)
    )

@router.get("/me", response_model=User)
def read_users_me(current_user = Depends(get_current_user)):
    """Get current user profile"""
    return _to_user_schema(current_user)

@router.post("/personal-info", response_model=PersonalInfo, status_code=status.HTTP_201_CREATED)
def add_personal_info(
    info: PersonalInfoCreate,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add a traveler or guest record"""
    return UserService.create_personal_info(db, current_user.id, info)

@router.get("/personal-info", response_model=List[PersonalInfo])
def list_personal_info(current_user = Depends(get_current_user), db: Session = Depends(get_db)):
    """List the current user's traveler records"""
    return UserService.list_personal_infos(db, current_user.id)
