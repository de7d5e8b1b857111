# splitauth Models
from splitauth.models.base import BaseModel
from splitauth.models.token_blacklist import TokenBlacklist
from splitauth.models.user import User
from splitauth.models.user_session import UserSession

__all__ = [
    "BaseModel",
    "TokenBlacklist",
    "User",
    "UserSession",
]
