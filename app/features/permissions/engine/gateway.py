"""
Boundary between the engine and storage.

Rows crossing this boundary are plain dicts. Permission rows identify one
catalog level through exactly one of ``service_id``, ``sub_service_id`` and
``sub_sub_service_id``; override rows also carry ``is_allowed``.
Implementations raise FetchError when a load fails and SaveError when a save
fails, after making sure nothing was partially written.
"""
from typing import Any, Dict, List, Optional, Protocol, Sequence

from app.features.permissions.engine.nodes import NodeRecord


Row = Dict[str, Any]


class PersistenceGateway(Protocol):

    async def load_tree(self) -> List[NodeRecord]:
        ...

    async def load_job_baseline(self, job_id: int) -> List[Row]:
        ...

    async def load_user_overrides(self, user_id: str) -> List[Row]:
        ...

    async def load_user_job(self, user_id: str) -> Optional[int]:
        ...

    async def save_job_baseline(self, job_id: int, rows: Sequence[Row], actor_id: Optional[str] = None) -> int:
        """Replace every stored row of the job with ``rows``; returns how many rows were removed."""
        ...

    async def save_user_overrides(
        self,
        user_id: str,
        insert_rows: Sequence[Row],
        delete_rows: Sequence[Row],
        actor_id: Optional[str] = None,
    ) -> None:
        """Apply deletes then inserts in one transaction."""
        ...
