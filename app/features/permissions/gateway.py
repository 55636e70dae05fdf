"""
SQLAlchemy implementation of the permission persistence gateway.

Loads wrap database errors in FetchError. Saves run in the request session's
transaction: on any database error the transaction is rolled back and
SaveError is raised, so either every row of a save is written or none is.
"""
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.features.permissions.engine.errors import FetchError, SaveError
from app.features.permissions.engine.nodes import KIND_COLUMNS, NodeKind, NodeRecord, from_kind_ref
from app.features.permissions.models import JobPermission, UserPermission
from app.features.services.models import Service, SubService, SubSubService
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


def _kind_ref(row) -> Dict[str, Optional[int]]:
    return {column: getattr(row, column) for column in KIND_COLUMNS}


def _matches_kind_ref(model, row: Dict[str, Any]):
    """WHERE clause matching the single catalog reference of ``row``."""
    clauses = []
    for column in KIND_COLUMNS:
        value = row.get(column)
        attr = getattr(model, column)
        clauses.append(attr.is_(None) if value is None else attr == value)
    return and_(*clauses)


class SqlAlchemyGateway:
    """
    Persistence gateway bound to one AsyncSession.

    Usage:
        gateway = SqlAlchemyGateway(db)
        editor = await BaselineEditor.open(gateway, job_id)
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ========================================================================
    # Loads
    # ========================================================================

    async def load_tree(self) -> List[NodeRecord]:
        try:
            services = (await self.db.execute(select(Service).order_by(Service.id))).scalars().all()
            sub_services = (await self.db.execute(select(SubService).order_by(SubService.id))).scalars().all()
            sub_sub_services = (
                await self.db.execute(select(SubSubService).order_by(SubSubService.id))
            ).scalars().all()
        except SQLAlchemyError as e:
            raise FetchError(f"Could not load the service catalog: {e}") from e

        records = [
            NodeRecord(NodeKind.SERVICE, s.id, None, s.label_ar, s.label_en)
            for s in services
        ]
        records += [
            NodeRecord(NodeKind.SUB_SERVICE, ss.id, ss.service_id, ss.label_ar, ss.label_en)
            for ss in sub_services
        ]
        records += [
            NodeRecord(NodeKind.SUB_SUB_SERVICE, sss.id, sss.sub_service_id, sss.label_ar, sss.label_en)
            for sss in sub_sub_services
        ]
        return records

    async def load_job_baseline(self, job_id: int) -> List[Dict[str, Any]]:
        try:
            result = await self.db.execute(
                select(JobPermission).where(JobPermission.job_id == job_id).order_by(JobPermission.id)
            )
        except SQLAlchemyError as e:
            raise FetchError(f"Could not load permissions of job {job_id}: {e}") from e
        return [_kind_ref(row) for row in result.scalars().all()]

    async def load_user_overrides(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            result = await self.db.execute(
                select(UserPermission).where(UserPermission.user_id == user_id).order_by(UserPermission.id)
            )
        except SQLAlchemyError as e:
            raise FetchError(f"Could not load permissions of user {user_id}: {e}") from e
        return [{**_kind_ref(row), "is_allowed": row.is_allowed} for row in result.scalars().all()]

    async def load_user_job(self, user_id: str) -> Optional[int]:
        try:
            return await self.db.scalar(select(User.job_id).where(User.id == user_id))
        except SQLAlchemyError as e:
            raise FetchError(f"Could not load the job of user {user_id}: {e}") from e

    # ========================================================================
    # Saves
    # ========================================================================

    async def save_job_baseline(
        self,
        job_id: int,
        rows: Sequence[Dict[str, Any]],
        actor_id: Optional[str] = None,
    ) -> int:
        try:
            result = await self.db.execute(delete(JobPermission).where(JobPermission.job_id == job_id))
            self.db.add_all([JobPermission(job_id=job_id, actor_id=actor_id, **row) for row in rows])
            await self.db.flush()
            if config.PRUNE_REDUNDANT_OVERRIDES:
                pruned = await self._prune_redundant_overrides(job_id, {from_kind_ref(row) for row in rows})
                if pruned:
                    log.info("Removed %d user overrides made redundant by job %s", pruned, job_id)
            await self.db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SaveError(f"Could not save permissions of job {job_id}: {e}") from e

    async def save_user_overrides(
        self,
        user_id: str,
        insert_rows: Sequence[Dict[str, Any]],
        delete_rows: Sequence[Dict[str, Any]],
        actor_id: Optional[str] = None,
    ) -> None:
        try:
            for row in delete_rows:
                await self.db.execute(
                    delete(UserPermission).where(
                        UserPermission.user_id == user_id,
                        _matches_kind_ref(UserPermission, row),
                    )
                )
            self.db.add_all([
                UserPermission(
                    user_id=user_id,
                    actor_id=actor_id,
                    is_allowed=row["is_allowed"],
                    **{column: row.get(column) for column in KIND_COLUMNS},
                )
                for row in insert_rows
            ])
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise SaveError(f"Could not save permissions of user {user_id}: {e}") from e

    async def _prune_redundant_overrides(self, job_id: int, baseline: set) -> int:
        """Delete overrides of the job's users that now repeat the job baseline."""
        result = await self.db.execute(
            select(UserPermission)
            .join(User, User.id == UserPermission.user_id)
            .where(User.job_id == job_id)
        )
        redundant = []
        for row in result.scalars().all():
            try:
                node_id = from_kind_ref(_kind_ref(row))
            except ValueError:
                continue
            if row.is_allowed == (node_id in baseline):
                redundant.append(row.id)
        if redundant:
            await self.db.execute(delete(UserPermission).where(UserPermission.id.in_(redundant)))
        return len(redundant)
