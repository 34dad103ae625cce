import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from crowdup.api.deps import get_credential_store, get_principal, get_session_manager, require_principal
from crowdup.core.config import settings
from crowdup.core.cookies import (
    CSRF_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    clear_auth_cookies,
    set_auth_cookies,
    set_csrf_cookie,
)
from crowdup.core.csrf import generate_csrf_token
from crowdup.core.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    UnexpectedError,
)
from crowdup.schema.auth import CsrfTokenResponse, SuccessResponse, UserEnvelope
from crowdup.schema.user import PasswordChange, ProfileUpdate, SessionRead, UserCreate, UserLogin, UserRead
from crowdup.services import user_service
from crowdup.services.authenticator import Anonymous, Principal
from crowdup.services.credential_store import SqlCredentialStore
from crowdup.services.session_manager import SessionManager

logger = logging.getLogger("crowdup.api.routes.auth")

router = APIRouter()


def _unauthorized_clearing_cookies(detail: str) -> JSONResponse:
    response = JSONResponse({"detail": detail}, status_code=status.HTTP_401_UNAUTHORIZED)
    clear_auth_cookies(response)
    return response


@router.post("/signup", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: UserCreate,
    response: Response,
    store: SqlCredentialStore = Depends(get_credential_store),
    manager: SessionManager = Depends(get_session_manager),
) -> UserEnvelope:
    user = await user_service.register_user(
        store,
        username=payload.username,
        email=payload.email,
        password=payload.password,
        display_name=payload.display_name,
    )
    tokens = await manager.start_session(user.id)
    set_auth_cookies(response, tokens.access_token, tokens.refresh_token)
    return UserEnvelope(user=UserRead.model_validate(user))


@router.post("/login", response_model=UserEnvelope)
async def login(
    payload: UserLogin,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
) -> UserEnvelope:
    try:
        result = await manager.login(payload.username_or_email, payload.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.detail) from None
    set_auth_cookies(response, result.tokens.access_token, result.tokens.refresh_token)
    return UserEnvelope(user=UserRead.model_validate(result.user))


@router.post("/refresh", response_model=SuccessResponse)
async def refresh(
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
    refresh_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
):
    if not refresh_cookie:
        return _unauthorized_clearing_cookies("No refresh token provided")
    try:
        tokens = await manager.refresh(refresh_cookie)
    except InvalidTokenError:
        return _unauthorized_clearing_cookies("Invalid or expired refresh token")
    set_auth_cookies(response, tokens.access_token, tokens.refresh_token)
    return SuccessResponse()


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
    refresh_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
) -> SuccessResponse:
    await manager.logout(refresh_cookie)
    clear_auth_cookies(response)
    return SuccessResponse()


@router.get("/me", response_model=UserEnvelope)
async def me(
    principal: Principal | Anonymous = Depends(get_principal),
    store: SqlCredentialStore = Depends(get_credential_store),
) -> UserEnvelope:
    if not principal.is_authenticated:
        return UserEnvelope(user=None)
    try:
        user = await store.get_user_by_id(principal.user_id)
    except UnexpectedError:
        logger.warning("Could not load user %s for /me", principal.user_id)
        return UserEnvelope(user=None)
    if user is None:
        return UserEnvelope(user=None)
    return UserEnvelope(user=UserRead.model_validate(user))


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(
    payload: PasswordChange,
    principal: Principal = Depends(require_principal),
    manager: SessionManager = Depends(get_session_manager),
    refresh_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
) -> SuccessResponse:
    try:
        await manager.change_password(
            principal.user_id,
            payload.current_password,
            payload.new_password,
            current_refresh_token=refresh_cookie,
        )
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from None
    except InvalidCredentialsError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect") from None
    return SuccessResponse()


@router.patch("/profile", response_model=UserEnvelope)
async def update_profile(
    payload: ProfileUpdate,
    principal: Principal = Depends(require_principal),
    store: SqlCredentialStore = Depends(get_credential_store),
) -> UserEnvelope:
    changes = payload.model_dump(exclude_unset=True)
    try:
        user = await user_service.update_profile(store, principal.user_id, changes)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from None
    logger.info("Updated profile fields %s for user %s", sorted(changes), principal.user_id)
    return UserEnvelope(user=UserRead.model_validate(user))


@router.get("/sessions", response_model=list[SessionRead])
async def list_sessions(
    principal: Principal = Depends(require_principal),
    manager: SessionManager = Depends(get_session_manager),
    refresh_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
) -> list[SessionRead]:
    sessions = await manager.list_sessions(principal.user_id, current_refresh_token=refresh_cookie)
    return [SessionRead.model_validate(info) for info in sessions]


@router.get("/csrf", response_model=CsrfTokenResponse, response_model_by_alias=True)
async def csrf_token(request: Request, response: Response) -> CsrfTokenResponse:
    token = request.cookies.get(CSRF_COOKIE_NAME)
    if not token:
        token = generate_csrf_token()
        set_csrf_cookie(response, token)
    return CsrfTokenResponse(csrf_token=token)


@router.get("/oauth/start")
async def oauth_start(request: Request):
    if not settings.google_client_id:
        logger.warning("OAuth sign-in requested but GOOGLE_CLIENT_ID is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="OAuth sign-in is not configured"
        )
    redirect_uri = f"{str(request.base_url).rstrip('/')}{settings.auth_path}/callback/google"
    query = urlencode(
        {
            "client_id": settings.google_client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "access_type": "online",
        }
    )
    return RedirectResponse(f"{settings.oauth_authorize_url}?{query}", status_code=status.HTTP_302_FOUND)
