"""
User Repository.
"""

from crm.backend.models.user import User
from crm.backend.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    model = User
