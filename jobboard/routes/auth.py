from typing import Annotated, Callable, Optional

from fastapi import APIRouter, BackgroundTasks, Cookie, Depends, Header, Request
from fastapi.responses import JSONResponse

from ..config import Settings
from ..container import Container
from ..models import (
    ForgotPasswordRequest,
    Identity,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    Role,
    TokenPair,
)
from ..responses import success_response
from ..services.gate import ACCESS_COOKIE, REFRESH_COOKIE, AuthorizationGate

router = APIRouter(prefix="/auth", tags=["auth"])

ACCESS_COOKIE_MAX_AGE = 15 * 60
REFRESH_COOKIE_MAX_AGE = 7 * 24 * 60 * 60

RESET_ACK = "If email exists, reset link has been sent"

# dependencies

def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_current_user(
    container: Annotated[Container, Depends(get_container)],
    authorization: Annotated[Optional[str], Header()] = None,
    access_cookie: Annotated[Optional[str], Cookie(alias=ACCESS_COOKIE)] = None,
) -> Identity:
    return await container.gate.authenticate(authorization, access_cookie)


async def get_optional_user(
    container: Annotated[Container, Depends(get_container)],
    authorization: Annotated[Optional[str], Header()] = None,
    access_cookie: Annotated[Optional[str], Cookie(alias=ACCESS_COOKIE)] = None,
) -> Optional[Identity]:
    return await container.gate.optional_authenticate(authorization, access_cookie)


def require_roles(*roles: Role) -> Callable:
    async def dependency(identity: Annotated[Identity, Depends(get_current_user)]) -> Identity:
        return AuthorizationGate.authorize(identity, roles)

    return dependency


# helpers

def set_auth_cookies(response: JSONResponse, tokens: TokenPair, settings: Settings) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=ACCESS_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        max_age=REFRESH_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_auth_cookies(response: JSONResponse) -> None:
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)


# routes

@router.post("/register", status_code=201)
async def register(
    payload: RegisterRequest,
    background_tasks: BackgroundTasks,
    container: Annotated[Container, Depends(get_container)],
):
    result = await container.sessions.register(payload.email, payload.password, payload.name, payload.username)
    background_tasks.add_task(
        container.publisher.publish_user_registered, result.user.id, result.user.email, result.user.name
    )
    response = success_response(result, "Registration successful", status_code=201)
    set_auth_cookies(response, result.tokens, container.settings)
    return response


@router.post("/login")
async def login(payload: LoginRequest, container: Annotated[Container, Depends(get_container)]):
    result = await container.sessions.login(payload.email, payload.password)
    response = success_response(result, "Login successful")
    set_auth_cookies(response, result.tokens, container.settings)
    return response


@router.post("/logout")
async def logout(
    container: Annotated[Container, Depends(get_container)],
    identity: Annotated[Optional[Identity], Depends(get_optional_user)],
):
    await container.sessions.logout(identity.id if identity else None)
    response = success_response(None, "Logout successful")
    clear_auth_cookies(response)
    return response


@router.post("/refresh-token")
async def refresh_token(
    container: Annotated[Container, Depends(get_container)],
    payload: Optional[RefreshRequest] = None,
    refresh_cookie: Annotated[Optional[str], Cookie(alias=REFRESH_COOKIE)] = None,
):
    presented = refresh_cookie or (payload.refresh_token if payload else None)
    tokens = await container.sessions.refresh(presented)
    response = success_response(tokens, "Token refreshed successfully")
    set_auth_cookies(response, tokens, container.settings)
    return response


@router.post("/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest, container: Annotated[Container, Depends(get_container)]):
    ticket = await container.resets.request_reset(payload.email)
    # Delivery happens out of band; the token is only echoed back in development
    data = None
    if ticket is not None and container.settings.is_development:
        data = {"resetToken": ticket.token}
    return success_response(data, RESET_ACK)


@router.post("/reset-password")
async def reset_password(
    payload: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    container: Annotated[Container, Depends(get_container)],
):
    user_id = await container.resets.reset_password(payload.token, payload.new_password)
    background_tasks.add_task(container.publisher.publish_password_changed, user_id, "reset")
    return success_response(None, "Password reset successful")


@router.get("/me")
async def me(current_user: Annotated[Identity, Depends(get_current_user)]):
    return success_response({"user": current_user}, "Authenticated")
