import uuid
from typing import List

from fastapi import APIRouter, Depends, Request, Response, status

from redirector_app.dependencies import (
    get_client_ip,
    get_current_admin,
    get_current_user,
    get_user_service,
)
from redirector_app.models import User
from redirector_app.schemas.user import (
    ChangePasswordRequest,
    ChangePasswordResponse,
    TokenRequest,
    TokenResponse,
    UserCreate,
    UserResponse,
)
from redirector_app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/token", response_model=TokenResponse)
async def create_token(
    credentials: TokenRequest,
    user_service: UserService = Depends(get_user_service)
):
    """Exchange username/password for a bearer token"""
    token = await user_service.authenticate(credentials.username, credentials.password)
    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
    )


@router.get("", response_model=List[UserResponse])
async def list_users(
    current_user: User = Depends(get_current_admin),
    user_service: UserService = Depends(get_user_service)
):
    return await user_service.list_users(current_user)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED,
             response_model_exclude_none=True)
async def create_user(
    user_data: UserCreate,
    request: Request,
    current_user: User = Depends(get_current_admin),
    user_service: UserService = Depends(get_user_service)
):
    """Create a user; a generated password is returned once, in this response only"""
    user, generated_password = await user_service.create_user(
        current_user,
        username=user_data.username,
        role=user_data.role,
        password=user_data.password,
        ip_address=get_client_ip(request),
    )
    response = UserResponse.model_validate(user)
    response.password = generated_password
    return response


@router.get("/me", response_model=UserResponse, response_model_exclude_none=True)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me/password", response_model=ChangePasswordResponse, response_model_exclude_none=True)
async def change_own_password(
    payload: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """
    Change your own password. Your current token stops working; the response
    carries a new one.
    """
    user, generated_password = await user_service.change_password(
        current_user,
        current_user,
        new_password=payload.password,
        current_password=payload.current_password,
        ip_address=get_client_ip(request),
    )
    token = user_service.issue_token(user)
    return ChangePasswordResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        password=generated_password,
    )


@router.post("/me/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout_everywhere(
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Invalidate every token issued for the current user"""
    await user_service.logout_all(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}", response_model=UserResponse, response_model_exclude_none=True)
async def get_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_admin),
    user_service: UserService = Depends(get_user_service)
):
    return await user_service.get_user(current_user, user_id)


@router.put("/{user_id}/password", response_model=ChangePasswordResponse, response_model_exclude_none=True)
async def change_user_password(
    user_id: uuid.UUID,
    payload: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_admin),
    user_service: UserService = Depends(get_user_service)
):
    """Reset a user's password (admins). The user's tokens stop working."""
    target = await user_service.get_user(current_user, user_id)
    user, generated_password = await user_service.change_password(
        current_user,
        target,
        new_password=payload.password,
        current_password=payload.current_password,
        ip_address=get_client_ip(request),
    )
    response = ChangePasswordResponse(password=generated_password)
    if user.id == current_user.id:
        token = user_service.issue_token(user)
        response.access_token = token.access_token
        response.token_type = token.token_type
        response.expires_in = token.expires_in
    return response


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    request: Request,
    current_user: User = Depends(get_current_admin),
    user_service: UserService = Depends(get_user_service)
):
    await user_service.delete_user(current_user, user_id, ip_address=get_client_ip(request))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
