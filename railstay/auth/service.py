from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
import logging

from railstay.models import User, PersonalInfo
from railstay.auth.schemas import UserCreate, PersonalInfoCreate
from railstay.auth.utils import get_password_hash, verify_password, decode_access_token

logger = logging.getLogger(__name__)

class UserService:
    @staticmethod
    def get_user_by_username(db: Session, username: str) -> Optional[User]:
        """Get user by username"""
        return db.query(User).filter(User.username == username).first()
    
    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()
    
    @staticmethod
    def create_user(db: Session, user: UserCreate) -> User:
        """Create a new user"""
        db_user = User(
            username=user.username,
            hashed_password=get_password_hash(user.password),
            wrong_payment_password_tried=0
        )
        
        try:
            db.add(db_user)
            db.commit()
            db.refresh(db_user)
            return db_user
        except IntegrityError:
            db.rollback()
            raise ValueError("Username already registered")
    
    @staticmethod
    def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
        """Authenticate user with username and password"""
        user = UserService.get_user_by_username(db, username)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user
    
    @staticmethod
    def create_personal_info(db: Session, user_id: int, info: PersonalInfoCreate) -> PersonalInfo:
        """Add a traveler record; at most one record per user is the default"""
        if info.is_default:
            db.query(PersonalInfo).filter(
                PersonalInfo.user_id == user_id,
                PersonalInfo.is_default.is_(True)
            ).update({PersonalInfo.is_default: False}, synchronize_session=False)
        
        db_info = PersonalInfo(
            user_id=user_id,
            name=info.name,
            identity_card_id=info.identity_card_id,
            is_default=info.is_default
        )
        db.add(db_info)
        db.commit()
        db.refresh(db_info)
        return db_info
    
    @staticmethod
    def list_personal_infos(db: Session, user_id: int) -> List[PersonalInfo]:
        return db.query(PersonalInfo).filter(PersonalInfo.user_id == user_id).order_by(PersonalInfo.id).all()


class SessionResolver:
    """Resolve an opaque session token to a user id"""
    
    def __init__(self, db: Session):
        self.db = db
    
    def resolve(self, token: Optional[str]) -> Optional[int]:
        """Return the user id for a live session, or None (never raises)"""
        if not token:
            return None
        
        payload = decode_access_token(token)
        if not payload or "sub" not in payload:
            return None
        
        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            logger.warning("session token carried a malformed subject")
            return None
        
        if UserService.get_user_by_id(self.db, user_id) is None:
            return None
        return user_id
