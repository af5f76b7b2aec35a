"""
TallyHub Backend — User Route Handlers
========================================

What:  /api/users CRUD plus statistics, email search and existence check.
How:   Validation happens in dependencies (tallyhub.validation) before the
       handler body runs; handlers only call UserService and wrap the result.

Route order matters:
    /statistics and /search/email are declared before /{user_id} so the
    static segments are not captured as ids.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tallyhub.database import get_db_session
from tallyhub.exceptions import NotFoundError
from tallyhub.schemas.envelope import created_response, success_response
from tallyhub.schemas.user import UserCreate, UserExistsResponse, UserResponse, UserUpdate
from tallyhub.services.user_service import user_service
from tallyhub.validation import (
    PageParams,
    pagination_params,
    required_email,
    valid_user_id,
    validated_user_create,
    validated_user_update,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post("", status_code=201, summary="Create a user")
async def create_user(
    request: Request,
    payload: UserCreate = Depends(validated_user_create),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    user = await user_service.create_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        bcrypt_rounds=request.app.state.settings.bcrypt_rounds,
    )
    return created_response(user, "User created successfully")


@router.get("", summary="List users, newest first")
async def list_users(
    params: PageParams = Depends(pagination_params),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    result = await user_service.list_users(db, page=params.page, limit=params.limit)
    return success_response(result, "Users listed successfully")


@router.get("/statistics", summary="Registration counts")
async def get_user_statistics(db: AsyncSession = Depends(get_db_session)) -> JSONResponse:
    result = await user_service.get_statistics(db)
    return success_response(result, "Statistics retrieved successfully")


@router.get("/search/email", summary="Find a user by e-mail address")
async def get_user_by_email(
    email: str = Depends(required_email),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    user = await user_service.get_user_by_email(db, email)
    if user is None:
        raise NotFoundError(message="User not found", resource="user")
    return success_response(UserResponse.model_validate(user), "User found")


@router.get("/{user_id}", summary="Get a user by id")
async def get_user(
    user_id: uuid.UUID = Depends(valid_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    user = await user_service.get_user_by_id(db, user_id)
    return success_response(user, "User retrieved successfully")


@router.get("/{user_id}/exists", summary="Check whether a user id exists")
async def check_user_exists(
    user_id: uuid.UUID = Depends(valid_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    exists = await user_service.user_exists(db, user_id)
    return success_response(
        UserExistsResponse(exists=exists, user_id=str(user_id)),
        "User exists" if exists else "User not found",
    )


@router.put("/{user_id}", summary="Update a user's name and/or e-mail")
async def update_user(
    user_id: uuid.UUID = Depends(valid_user_id),
    changes: UserUpdate = Depends(validated_user_update),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    logger.info("Updating user %s (fields: %s)", user_id, sorted(changes.model_fields_set))
    user = await user_service.update_user(db, user_id, name=changes.name, email=changes.email)
    return success_response(user, "User updated successfully")


@router.delete("/{user_id}", summary="Delete a user")
async def delete_user(
    user_id: uuid.UUID = Depends(valid_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> JSONResponse:
    await user_service.delete_user(db, user_id)
    return success_response(message="User deleted successfully")
