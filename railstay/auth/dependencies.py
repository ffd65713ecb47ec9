from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from railstay.database import get_db
from railstay.config import settings
from railstay.context import RequestContext
from railstay.auth.service import UserService, SessionResolver

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    """Get current authenticated user"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    
    user_id = SessionResolver(db).resolve(token)
    if user_id is None:
        raise credentials_exception
    
    user = UserService.get_user_by_id(db, user_id=user_id)
    if user is None:
        raise credentials_exception
    
    return user

def get_request_context(current_user = Depends(get_current_user)) -> RequestContext:
    """Build the explicit per-request context for booking calls"""
    return RequestContext(user_id=current_user.id)

def get_current_admin_user(current_user = Depends(get_current_user)):
    """Get current authenticated admin user"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
