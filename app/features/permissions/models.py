"""
Permission rows for jobs and users.

Each row grants (or, for users, explicitly allows/denies) one node of the
service catalog. A row references exactly one catalog level through
service_id, sub_service_id or sub_sub_service_id; the other two are NULL.
"""
from sqlalchemy import String, Integer, Boolean, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin


# Exactly one of the three catalog references is populated
KIND_REF_CHECK = (
    "(CASE WHEN service_id IS NULL THEN 0 ELSE 1 END)"
    " + (CASE WHEN sub_service_id IS NULL THEN 0 ELSE 1 END)"
    " + (CASE WHEN sub_sub_service_id IS NULL THEN 0 ELSE 1 END) = 1"
)


class KindRefMixin:
    """Catalog reference columns shared by job and user permission rows."""
    service_id: Mapped[int | None] = mapped_column(
        ForeignKey("services.id", ondelete="CASCADE"), nullable=True, index=True
    )
    sub_service_id: Mapped[int | None] = mapped_column(
        ForeignKey("sub_services.id", ondelete="CASCADE"), nullable=True, index=True
    )
    sub_sub_service_id: Mapped[int | None] = mapped_column(
        ForeignKey("sub_sub_services.id", ondelete="CASCADE"), nullable=True, index=True
    )

    # User who wrote the row (admin performing the edit)
    actor_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class JobPermission(Base, KindRefMixin, TimestampMixin):
    """
    Baseline grant of one catalog node to a job.

    Absence of a row means the node is not granted to the job.
    """
    __tablename__ = "job_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(KIND_REF_CHECK, name="ck_job_permissions_one_kind_ref"),
    )

    def __repr__(self) -> str:
        return (
            f"<JobPermission(job_id={self.job_id}, service_id={self.service_id}, "
            f"sub_service_id={self.sub_service_id}, sub_sub_service_id={self.sub_sub_service_id})>"
        )


class UserPermission(Base, KindRefMixin, TimestampMixin):
    """
    Per-user exception to the job baseline for one catalog node.

    Only stored when is_allowed differs from what the user's job grants.
    """
    __tablename__ = "user_permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    is_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False)

    __table_args__ = (
        CheckConstraint(KIND_REF_CHECK, name="ck_user_permissions_one_kind_ref"),
        Index("ix_user_permissions_user_node", "user_id", "service_id", "sub_service_id", "sub_sub_service_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<UserPermission(user_id={self.user_id}, service_id={self.service_id}, "
            f"sub_service_id={self.sub_service_id}, sub_sub_service_id={self.sub_sub_service_id}, "
            f"is_allowed={self.is_allowed})>"
        )
