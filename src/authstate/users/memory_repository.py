"""
AuthState - Memory User Repository

Stockage en mémoire (MVP, tests). Chaque lecture renvoie une copie:
une modification non sauvegardée n'est jamais visible.
"""

import copy
from typing import Dict, Optional

from ..errors import AlreadyExistsError
from .interfaces import IUserRepository
from .models import User


class MemoryUserRepository(IUserRepository):
    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._by_email: Dict[str, str] = {}

    async def find_by_id(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def find_by_email(self, email: str) -> Optional[User]:
        user_id = self._by_email.get(email.strip().lower())
        return await self.find_by_id(user_id) if user_id else None

    async def save(self, user: User) -> User:
        owner = self._by_email.get(user.email)
        if owner is not None and owner != user.user_id:
            raise AlreadyExistsError()

        previous = self._users.get(user.user_id)
        if previous is not None and previous.email != user.email:
            self._by_email.pop(previous.email, None)

        self._users[user.user_id] = copy.deepcopy(user)
        self._by_email[user.email] = user.user_id
        return copy.deepcopy(user)

    def count(self) -> int:
        return len(self._users)
