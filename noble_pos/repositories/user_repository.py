# ==============================================================================
# USER REPOSITORY
# ==============================================================================
# Access to the Users collection: {uid: {email, password_hash, role}}
# ==============================================================================

from typing import Any, Dict, Optional

from noble_pos.models.entities import USERS
from noble_pos.repositories.interfaces import IDocumentStore


class UserRepository:

    def __init__(self, store: IDocumentStore):
        self.store = store

    def get(self, uid: str) -> Optional[Dict[str, Any]]:
        return self.store.get(USERS, uid)

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Emails are stored lower case; lookup is case-insensitive."""
        email = (email or '').strip().lower()
        if not email:
            return None
        matches = self.store.query(USERS, where=[('email', '==', email)], limit=1)
        return matches[0] if matches else None

    def create(self, uid: str, data: Dict[str, Any]) -> None:
        self.store.set(USERS, uid, data)

    def set_role(self, uid: str, role: str) -> None:
        self.store.update(USERS, uid, {'role': role})
