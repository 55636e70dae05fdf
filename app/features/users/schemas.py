"""
Pydantic schemas for user and job responses.
"""
from pydantic import BaseModel


class JobResponse(BaseModel):
    """Job role as listed in the subject pickers."""
    id: int
    name_ar: str
    name_en: str

    model_config = {"from_attributes": True}


class UserPublic(BaseModel):
    """User as listed in the subject pickers."""
    id: str
    name_ar: str
    name_en: str
    email: str | None = None
    avatar_url: str | None = None
    job_id: int | None = None
    is_active: bool
    is_super_admin: bool

    model_config = {"from_attributes": True}


class UserResponse(UserPublic):
    """User with the job they hold."""
    job: JobResponse | None = None
