from typing import Optional
from sqlalchemy.orm import Session
import logging
import re

from railstay.config import settings
from railstay.errors import (
    ValidationError, WrongPasswordError, TooManyAttemptsError, InvalidPaymentPasswordFormatError,
    NotFoundError
)
from railstay.models import User
from railstay.auth.utils import get_password_hash, verify_password

logger = logging.getLogger(__name__)

class PaymentPasswordGuard:
    """Secondary authorization for payments with a wrong-attempt ceiling.

    Failed attempts are committed immediately so they survive the failed
    request; a locked account stays locked until ``reset_attempts``.
    """

    def __init__(self, db: Session):
        self.db = db

    def authorize(
        self,
        user: User,
        user_password: Optional[str] = None,
        payment_password: Optional[str] = None
    ) -> None:
        """Check a payment password (or the login password) for a user"""
        if user_password is None and payment_password is None:
            raise ValidationError("Either user_password or payment_password is required")

        max_attempts = settings.PAYMENT_PASSWORD_MAX_ATTEMPTS
        if user.wrong_payment_password_tried >= max_attempts:
            logger.warning("payment authorization locked for user %s", user.id)
            raise TooManyAttemptsError(max_attempts)

        if payment_password is not None:
            # Users without a payment password pay with their login password
            hashed = user.hashed_payment_password or user.hashed_password
            accepted = verify_password(payment_password, hashed)
        else:
            accepted = verify_password(user_password, user.hashed_password)

        if not accepted:
            self.db.query(User).filter(User.id == user.id).update(
                {User.wrong_payment_password_tried: User.wrong_payment_password_tried + 1},
                synchronize_session=False
            )
            self.db.commit()
            self.db.refresh(user)
            logger.warning(
                "wrong payment password for user %s (%d/%d)",
                user.id, user.wrong_payment_password_tried, max_attempts
            )
            raise WrongPasswordError()

        if user.wrong_payment_password_tried:
            user.wrong_payment_password_tried = 0
            self.db.commit()

    def set_payment_password(self, user: User, user_password: str, payment_password: str) -> None:
        """Set or replace the payment password after re-checking the login password"""
        if not verify_password(user_password, user.hashed_password):
            raise WrongPasswordError()

        length = settings.PAYMENT_PASSWORD_LENGTH
        if not re.fullmatch(r"[0-9]{%d}" % length, payment_password or ""):
            raise InvalidPaymentPasswordFormatError(length)

        user.hashed_payment_password = get_password_hash(payment_password)
        user.wrong_payment_password_tried = 0
        self.db.commit()
        logger.info("payment password set for user %s", user.id)

    def reset_attempts(self, user_id: int) -> None:
        """Administrative unlock"""
        updated = self.db.query(User).filter(User.id == user_id).update(
            {User.wrong_payment_password_tried: 0},
            synchronize_session=False
        )
        if not updated:
            raise NotFoundError("User")
        self.db.commit()
        logger.info("payment password attempts reset for user %s", user_id)
