"""
User feature routes.

Subject lists for the permission editors: users and job roles.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import Job, User
from app.features.users.schemas import JobResponse, UserPublic, UserResponse
from app.features.users.dependencies import get_user_by_id


router = APIRouter(tags=["users"])


@router.get("/jobs", response_model=list[JobResponse])
async def list_jobs(
    db: Annotated[AsyncSession, Depends(get_db)],
    q: str | None = None,
):
    """List job roles, optionally filtered by name."""
    stmt = select(Job).order_by(Job.id)
    if q:
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(Job.name_ar.ilike(pattern), Job.name_en.ilike(pattern)))
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def read_user(
    user: Annotated[User, Depends(get_user_by_id)]
):
    """Get a user by ID."""
    return user


@router.get("", response_model=list[UserPublic])
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    q: str | None = None,
    job_id: int | None = None,
    skip: int = 0,
    limit: int = 50
):
    """List active users, optionally filtered by name, email or job."""
    stmt = select(User).where(User.is_active == True)
    if q:
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(
            User.name_ar.ilike(pattern),
            User.name_en.ilike(pattern),
            User.email.ilike(pattern),
        ))
    if job_id is not None:
        stmt = stmt.where(User.job_id == job_id)
    result = await db.execute(stmt.order_by(User.id).offset(skip).limit(limit))
    users = result.scalars().all()
    return users
