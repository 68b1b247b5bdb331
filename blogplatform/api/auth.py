"""Authentication API endpoints."""

from datetime import timedelta
from uuid import UUID

from argon2 import PasswordHasher
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from blogplatform.core import get_db, get_logger, settings
from blogplatform.core.config import JwtSettings
from blogplatform.schemas.auth import (
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserInfoResponse,
)
from blogplatform.services.auth import AuthService
from blogplatform.services.authorization import AuthorizationDecision, ResourceOwnerAuthorizer
from blogplatform.services.compromised_token_store import SqlAlchemyCompromisedTokenStore
from blogplatform.services.results import AuthResult, UserProfile
from blogplatform.services.token import TokenPrincipal, TokenService
from blogplatform.services.user_store import SqlAlchemyUserStore, default_password_hasher

logger = get_logger("api.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

authorizer = ResourceOwnerAuthorizer()


def get_jwt_settings() -> JwtSettings:
    """Dependency to get the JWT signing configuration."""
    return settings.jwt_settings()


def get_password_hasher() -> PasswordHasher:
    return default_password_hasher


def get_token_service(
    db: AsyncSession = Depends(get_db),
    jwt_settings: JwtSettings = Depends(get_jwt_settings),
) -> TokenService:
    """Dependency to get token service."""
    return TokenService(jwt_settings, SqlAlchemyCompromisedTokenStore(db))


def get_user_store(
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> SqlAlchemyUserStore:
    """Dependency to get user store."""
    return SqlAlchemyUserStore(
        db,
        hasher=hasher,
        max_failed_attempts=settings.lockout_max_failed_attempts,
        lockout_duration=timedelta(minutes=settings.lockout_duration_minutes),
    )


def get_auth_service(
    user_store: SqlAlchemyUserStore = Depends(get_user_store),
    token_service: TokenService = Depends(get_token_service),
) -> AuthService:
    """Dependency to get auth service."""
    return AuthService(user_store, token_service)


def _unauthorized(detail: str | list[str]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    request: Request,
    token_service: TokenService = Depends(get_token_service),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPrincipal:
    """Dependency to get the authenticated principal from the bearer token.

    Rejects tokens that fail validation and tokens issued before the user's
    last revoke-all.
    """
    auth_header = request.headers.get("Authorization", "")

    if not auth_header.startswith("Bearer "):
        raise _unauthorized("Missing or invalid authorization header")

    token = auth_header[7:]  # Remove "Bearer " prefix

    principal = token_service.read_access_token(token)
    if principal is None:
        raise _unauthorized("Invalid or expired token")

    user = await auth_service.validate_token_user(principal)
    if user is None:
        raise _unauthorized("Token has been revoked")

    return principal


def _user_info(profile: UserProfile) -> UserInfoResponse:
    return UserInfoResponse(
        user_id=profile.user_id,
        email=profile.email,
        full_name=profile.full_name,
        roles=[role.value for role in profile.roles],
    )


def _token_response(result: AuthResult, token_service: TokenService) -> TokenResponse:
    expires_in = (result.access_token_expires_at - token_service.now()).total_seconds()
    return TokenResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_at=result.access_token_expires_at,
        expires_in=max(0, int(expires_in)),
        user=_user_info(result.profile),
    )


@router.post("/register", response_model=TokenResponse)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Register a new account and return its first token pair."""
    result = await auth_service.register(
        email=request.email,
        password=request.password,
        confirm_password=request.confirm_password,
        full_name=request.full_name,
    )
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=list(result.errors))
    return _token_response(result, token_service)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Authenticate and get a token pair.

    Failed attempts are committed before the 401 is raised so the lockout
    counter survives the request.
    """
    result = await auth_service.login(email=request.email, password=request.password)
    if not result.success:
        await db.commit()
        raise _unauthorized(list(result.errors))
    return _token_response(result, token_service)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(
    request: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Exchange an (expired) access token and a refresh token for a new pair.

    The presented refresh token cannot be used again.
    """
    result = await auth_service.refresh_token(
        access_token=request.access_token,
        refresh_token=request.refresh_token,
    )
    if not result.success:
        raise _unauthorized(list(result.errors))
    return _token_response(result, token_service)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: LogoutRequest,
    principal: TokenPrincipal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Log out by blacklisting the given refresh token."""
    await auth_service.logout(principal.user_id, request.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/revoke-all", response_model=MessageResponse)
@router.post("/revoke-all/{user_id}", response_model=MessageResponse)
async def revoke_all_tokens(
    user_id: UUID | None = None,
    principal: TokenPrincipal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke every token of a user.

    Without a user id the caller's own tokens are revoked. Revoking another
    user's tokens requires the Admin role.
    """
    target_id = str(user_id) if user_id is not None else principal.user_id

    decision = authorizer.authorize(principal.user_id, principal.is_admin, target_id)
    if decision is AuthorizationDecision.DENY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to revoke tokens for this user",
        )

    if not await auth_service.revoke_all_tokens(target_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    logger.info(f"User {principal.user_id} revoked all tokens of user {target_id}")
    return MessageResponse(message="All tokens have been revoked")


@router.get("/me", response_model=UserInfoResponse)
async def get_current_user_info(
    principal: TokenPrincipal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserInfoResponse:
    """Get the current user's information."""
    profile = await auth_service.get_user_info(principal.user_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _user_info(profile)
