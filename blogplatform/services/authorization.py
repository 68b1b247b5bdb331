"""Resource-ownership authorization."""

from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from blogplatform.core.logging import get_logger
from blogplatform.services.token import TokenPrincipal

logger = get_logger("authorization")


class AuthorizationDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class ResourceWithOwner(Protocol):
    """Anything owned by a single user."""

    @property
    def owner_id(self) -> Any: ...


def is_owner(requester_id: str | UUID, owner_id: str | UUID | None) -> bool:
    """Compare identifiers as strings so UUID and str forms match."""
    if owner_id is None:
        return False
    return str(requester_id) == str(owner_id)


class ResourceOwnerAuthorizer:
    """Allows admins and the resource owner; denies everyone else.

    Stateless. Each denial is logged as a security warning.
    """

    def authorize(
        self,
        requester_id: str | UUID | None,
        requester_is_admin: bool,
        resource_owner_id: str | UUID | None,
    ) -> AuthorizationDecision:
        if requester_id is None or not str(requester_id):
            logger.warning("SECURITY: authorization denied, no authenticated user")
            return AuthorizationDecision.DENY

        if requester_is_admin:
            return AuthorizationDecision.ALLOW

        if is_owner(requester_id, resource_owner_id):
            return AuthorizationDecision.ALLOW

        logger.warning(
            f"SECURITY: user {requester_id} denied access to resource owned by {resource_owner_id}"
        )
        return AuthorizationDecision.DENY

    def authorize_resource(
        self, principal: TokenPrincipal | None, resource: ResourceWithOwner
    ) -> AuthorizationDecision:
        """Authorize a token principal against an owned resource."""
        if principal is None:
            return self.authorize(None, False, resource.owner_id)
        return self.authorize(principal.user_id, principal.is_admin, resource.owner_id)
