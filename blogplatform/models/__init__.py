# Blog Platform Models
from blogplatform.models.base import BaseModel
from blogplatform.models.compromised_refresh_token import CompromisedRefreshToken
from blogplatform.models.user import Role, User, UserRole

__all__ = [
    "BaseModel",
    "CompromisedRefreshToken",
    "Role",
    "User",
    "UserRole",
]
