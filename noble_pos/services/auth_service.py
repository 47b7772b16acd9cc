# ==============================================================================
# AUTH SERVICE
# ==============================================================================
# Email/password sign in against the Users collection.
# Passwords are stored as werkzeug hashes; roles are informational
# (every signed in user reaches every screen).
# ==============================================================================

import re
import uuid
from typing import Any, Dict, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from noble_pos.logging_config import get_logger
from noble_pos.models.entities import User, UserRole, to_text
from noble_pos.repositories.interfaces import IUserRepository

logger = get_logger(__name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class AuthService:
    """
    Sign in and account creation.

    The session itself is managed by the routes (flask.session);
    this service only checks credentials.
    """

    INVALID_CREDENTIALS = 'Invalid email or password'

    def __init__(self, user_repo: IUserRepository):
        self.user_repo = user_repo

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """
        Checks credentials.

        Args:
            email: Sign in email (case-insensitive)
            password: Plain text password

        Returns:
            {'ok': True, 'uid', 'email', 'role'} or {'ok': False, 'error'}
        """
        email = to_text(email).lower()
        if not email or not password or not isinstance(password, str):
            return {'ok': False, 'error': self.INVALID_CREDENTIALS}

        record = self.user_repo.find_by_email(email)
        if not record:
            logger.info("Sign in failed: unknown email", extra={'email': email})
            return {'ok': False, 'error': self.INVALID_CREDENTIALS}

        user = User.from_dict(record['id'], record)
        if not user.password_hash or not check_password_hash(user.password_hash, password):
            logger.info("Sign in failed: wrong password", extra={'email': email})
            return {'ok': False, 'error': self.INVALID_CREDENTIALS}

        logger.info("Signed in", extra={'email': email, 'role': user.role.value})
        return {'ok': True, 'uid': user.uid, 'email': user.email, 'role': user.role.value}

    def create_user(self, email: str, password: str, role: str = UserRole.STAFF.value) -> Dict[str, Any]:
        """
        Creates an account.

        Returns:
            {'ok': True, 'uid'} or {'ok': False, 'error'}
        """
        email = to_text(email).lower()
        if not EMAIL_RE.match(email):
            return {'ok': False, 'error': 'Invalid email address'}
        if not isinstance(password, str) or len(password) < 6:
            return {'ok': False, 'error': 'Password must be at least 6 characters'}
        try:
            role = UserRole(role or UserRole.STAFF.value)
        except ValueError:
            return {'ok': False, 'error': f'Invalid role: {role}'}
        if self.user_repo.find_by_email(email):
            return {'ok': False, 'error': 'A user with this email already exists'}

        user = User(
            uid=uuid.uuid4().hex,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
        )
        self.user_repo.create(user.uid, user.to_dict())
        logger.info("User created", extra={'email': email, 'role': role.value})
        return {'ok': True, 'uid': user.uid}

    def get_role(self, uid: str) -> Optional[str]:
        record = self.user_repo.get(uid) if uid else None
        if not record:
            return None
        return User.from_dict(uid, record).role.value
