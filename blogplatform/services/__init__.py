# Blog Platform Services
from blogplatform.services.auth import AuthService
from blogplatform.services.authorization import (
    AuthorizationDecision,
    ResourceOwnerAuthorizer,
    ResourceWithOwner,
)
from blogplatform.services.compromised_token_store import SqlAlchemyCompromisedTokenStore
from blogplatform.services.ports import (
    CompromisedTokenRecord,
    CompromisedTokenStore,
    IdentityResult,
    PasswordCheckResult,
    UserStore,
)
from blogplatform.services.results import AuthResult, UserProfile
from blogplatform.services.token import TokenPrincipal, TokenService, hash_token
from blogplatform.services.token_cleanup import TokenCleanupService
from blogplatform.services.user_store import SqlAlchemyUserStore

__all__ = [
    "AuthResult",
    "AuthService",
    "AuthorizationDecision",
    "CompromisedTokenRecord",
    "CompromisedTokenStore",
    "IdentityResult",
    "PasswordCheckResult",
    "ResourceOwnerAuthorizer",
    "ResourceWithOwner",
    "SqlAlchemyCompromisedTokenStore",
    "SqlAlchemyUserStore",
    "TokenCleanupService",
    "TokenPrincipal",
    "TokenService",
    "UserProfile",
    "UserStore",
    "hash_token",
]
