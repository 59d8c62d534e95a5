# src/skillboard/schemas/user.py

"""Pydantic schemas for the User resource."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: str = Field(..., min_length=3, max_length=254)


class UserCreate(UserBase):
    """Properties to receive via API on create."""

    pass


class UserRead(UserBase):
    """Properties to return to the client."""

    id: int
    created_at: datetime
    games_played: int = 0
    total_points: float = 0.0
    average_accuracy: float = 0.0
    average_time: float = 0.0
    best_score: float = 0.0

    model_config = ConfigDict(from_attributes=True)
