from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from ..container import Container
from ..models import ChangePasswordRequest, Identity, Role, UserUpdate
from ..responses import success_response
from .auth import clear_auth_cookies, get_container, get_current_user, require_roles

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me")
async def get_my_profile(
    container: Annotated[Container, Depends(get_container)],
    current_user: Annotated[Identity, Depends(get_current_user)],
):
    user = await container.users.get_profile(current_user)
    return success_response({"user": user}, "Profile retrieved successfully")


@router.patch("/me/password")
async def change_my_password(
    payload: ChangePasswordRequest,
    background_tasks: BackgroundTasks,
    container: Annotated[Container, Depends(get_container)],
    current_user: Annotated[Identity, Depends(get_current_user)],
):
    await container.users.change_password(current_user, payload.current_password, payload.new_password)
    background_tasks.add_task(container.publisher.publish_password_changed, current_user.id, "change")
    response = success_response(None, "Password changed successfully. Please login again.")
    clear_auth_cookies(response)
    return response


@router.get("")
async def list_users(
    container: Annotated[Container, Depends(get_container)],
    current_user: Annotated[Identity, Depends(require_roles(Role.admin))],
    role: Optional[Role] = None,
):
    users = await container.users.list_users(current_user, role)
    return success_response({"users": users}, "Users retrieved successfully")


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    container: Annotated[Container, Depends(get_container)],
    current_user: Annotated[Identity, Depends(get_current_user)],
):
    user = await container.users.get_user(current_user, user_id)
    return success_response({"user": user}, "User retrieved successfully")


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    payload: UserUpdate,
    container: Annotated[Container, Depends(get_container)],
    current_user: Annotated[Identity, Depends(get_current_user)],
):
    user = await container.users.update_user(current_user, user_id, payload)
    return success_response({"user": user}, "User updated successfully")


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    container: Annotated[Container, Depends(get_container)],
    current_user: Annotated[Identity, Depends(require_roles(Role.admin))],
):
    await container.users.delete_user(current_user, user_id)
    return success_response(None, "User deleted successfully")
