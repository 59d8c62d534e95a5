# src/skillboard/api/users.py

"""API endpoints for the user records leaderboards display."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from skillboard.db.models import User
from skillboard.db.session import get_db
from skillboard.exceptions import UserNotFoundError
from skillboard.schemas import user as user_schema

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "/",
    response_model=user_schema.UserRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_user(
    user_in: user_schema.UserCreate, db: AsyncSession = Depends(get_db)
) -> User:
    """
    Create a new user.

    - **username**: Unique display name shown on leaderboards.
    - **email**: Contact address carried into snapshot performer records.

    Raises:
        409 Conflict: If the username is already taken.
    """
    new_user = User(**user_in.model_dump())
    try:
        db.add(new_user)
        await db.commit()
        await db.refresh(new_user)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with username '{user_in.username}' already exists",
        )
    return new_user


@router.get("/{user_id}", response_model=user_schema.UserRead)
async def read_user(user_id: int, db: AsyncSession = Depends(get_db)) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user
