"""
Editor sessions for one subject.

An editor owns the tree, the in-memory state of one job baseline or one user's
overrides, its snapshot, the breadcrumb and the bulk editor. Saves are
serialized per subject: while one is in flight for a job or user, another
save of that subject is refused, but toggling and navigation stay available.
The registry shares one save lock between editors of the same subject.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from app.features.permissions.engine.errors import (
    FetchError,
    InertEditorError,
    SaveInProgressError,
    StructuralError,
    UnknownEditorError,
    UnsavedChangesError,
)
from app.features.permissions.engine.gateway import PersistenceGateway
from app.features.permissions.engine.mutation import BaselineMutator, ExceptionMutator
from app.features.permissions.engine.nodes import from_kind_ref
from app.features.permissions.engine.scope import (
    BulkAction,
    BulkTarget,
    NavigationPath,
    PendingBulkAction,
    ScopedBulkEditor,
    ScopePolicy,
)
from app.features.permissions.engine.tracker import BaselineTracker, OverrideTracker
from app.features.permissions.engine.tree import TreeModel
from app.utils import get_logger


log = get_logger(__name__)


@dataclass
class SaveResult:
    changed: bool
    inserted: int = 0
    deleted: int = 0


def _rows_to_ids(rows: Iterable[Mapping[str, Any]], tree: TreeModel, subject: str) -> List[Tuple[str, Mapping[str, Any]]]:
    """Pair each stored row with its node id, skipping malformed rows and unknown nodes."""
    result = []
    for row in rows:
        try:
            node_id = from_kind_ref(row)
        except ValueError as e:
            log.warning("Skipping malformed permission row for %s: %s", subject, e)
            continue
        if node_id not in tree:
            log.warning("Skipping permission row for %s: %s is not in the catalog", subject, node_id)
            continue
        result.append((node_id, row))
    return result


class Editor:
    """Shared behavior of the job and user editors."""

    kind = ""

    def __init__(
        self,
        subject_id: Any,
        tree: TreeModel,
        mutator,
        tracker,
        policy: ScopePolicy,
        warnings: Optional[List[StructuralError]] = None,
        load_error: Optional[str] = None,
    ):
        self.id = uuid.uuid4().hex
        self.subject_id = subject_id
        self.tree = tree
        self.mutator = mutator
        self.tracker = tracker
        self.warnings = warnings or []
        self.load_error = load_error
        self.path = NavigationPath(tree)
        self.bulk = ScopedBulkEditor(tree, mutator, tracker, self.path, policy)
        self._save_lock = asyncio.Lock()

    @property
    def is_inert(self) -> bool:
        return self.load_error is not None

    @property
    def is_saving(self) -> bool:
        return self._save_lock.locked()

    @property
    def has_changes(self) -> bool:
        return self.tracker.has_changes(self.mutator.state)

    def effective(self, node_id: str) -> bool:
        self.tree.lookup(node_id)
        return self.mutator.effective(node_id)

    def toggle(self, node_id: str, value: bool) -> None:
        self._ensure_loaded()
        self.mutator.toggle(node_id, value)

    def prepare_bulk(self, action: BulkAction, target: BulkTarget = BulkTarget.VIEW) -> PendingBulkAction:
        self._ensure_loaded()
        return self.bulk.prepare(action, target)

    def subtree_counts(self, node_id: str) -> Tuple[int, int]:
        """(granted, total) over the descendants of ``node_id``."""
        ids = [node.id for node in self.tree.descendants(node_id)]
        return sum(1 for i in ids if self.mutator.effective(i)), len(ids)

    def totals(self) -> Tuple[int, int]:
        ids = self.tree.all_ids()
        return sum(1 for i in ids if self.mutator.effective(i)), len(ids)

    async def save(self, gateway: PersistenceGateway, actor_id: Optional[str] = None) -> SaveResult:
        """
        Commit the current state and advance the snapshot.

        The state is captured when the save starts; edits made while the
        gateway call is pending stay as unsaved changes afterwards. On failure
        the gateway's SaveError propagates and nothing in memory changes.
        """
        self._ensure_loaded()
        if self._save_lock.locked():
            raise SaveInProgressError(f"A save for {self.kind} {self.subject_id} is already in progress")
        async with self._save_lock:
            committed = self._capture()
            log.info("Saving %s %s permissions", self.kind, self.subject_id)
            try:
                result = await self._commit(gateway, committed, actor_id)
            except Exception:
                log.exception("Saving %s %s permissions failed", self.kind, self.subject_id)
                raise
            self.tracker.advance(committed)
            log.info(
                "Saved %s %s permissions (inserted=%d, deleted=%d)",
                self.kind, self.subject_id, result.inserted, result.deleted,
            )
            return result

    def _ensure_loaded(self) -> None:
        if self.is_inert:
            raise InertEditorError(f"Editor for {self.kind} {self.subject_id} failed to load: {self.load_error}")

    def _capture(self):
        raise NotImplementedError

    async def _commit(self, gateway: PersistenceGateway, committed, actor_id: Optional[str]) -> SaveResult:
        raise NotImplementedError


class BaselineEditor(Editor):
    """Edits the baseline set of one job role."""

    kind = "job"

    def __init__(self, job_id: int, tree: TreeModel, baseline: Set[str], policy: ScopePolicy = ScopePolicy.ROW, **kwargs):
        super().__init__(job_id, tree, BaselineMutator(tree, set(baseline)), BaselineTracker(baseline), policy, **kwargs)

    @classmethod
    async def open(cls, gateway: PersistenceGateway, job_id: int, policy: ScopePolicy = ScopePolicy.ROW) -> "BaselineEditor":
        try:
            records = await gateway.load_tree()
            rows = await gateway.load_job_baseline(job_id)
        except FetchError as e:
            log.error("Could not load permissions of job %s: %s", job_id, e)
            return cls(job_id, TreeModel.empty(), set(), policy, load_error=str(e))
        tree, warnings = TreeModel.build(records)
        baseline = {node_id for node_id, _row in _rows_to_ids(rows, tree, f"job {job_id}")}
        log.info("Opened job editor for %s (%d granted)", job_id, len(baseline))
        return cls(job_id, tree, baseline, policy, warnings=warnings)

    @property
    def baseline(self) -> Set[str]:
        return self.mutator.baseline

    def override_of(self, node_id: str) -> Optional[bool]:
        return None

    def job_value(self, node_id: str) -> bool:
        return node_id in self.mutator.baseline

    def _capture(self) -> Set[str]:
        return set(self.mutator.baseline)

    async def _commit(self, gateway: PersistenceGateway, committed: Set[str], actor_id: Optional[str]) -> SaveResult:
        if not self.tracker.has_changes(committed):
            return SaveResult(changed=False)
        rows = self.tracker.payload(committed)
        deleted = await gateway.save_job_baseline(self.subject_id, rows, actor_id=actor_id)
        return SaveResult(changed=True, inserted=len(rows), deleted=deleted)


class ExceptionEditor(Editor):
    """Edits the overrides of one user against the baseline of the user's job."""

    kind = "user"

    def __init__(
        self,
        user_id: str,
        tree: TreeModel,
        overrides: Dict[str, bool],
        job_baseline: Set[str],
        policy: ScopePolicy = ScopePolicy.SUBTREE,
        job_id: Optional[int] = None,
        **kwargs,
    ):
        self.job_id = job_id
        mutator = ExceptionMutator(tree, dict(overrides), frozenset(job_baseline))
        super().__init__(user_id, tree, mutator, OverrideTracker(overrides), policy, **kwargs)

    @classmethod
    async def open(cls, gateway: PersistenceGateway, user_id: str, policy: ScopePolicy = ScopePolicy.SUBTREE) -> "ExceptionEditor":
        try:
            records = await gateway.load_tree()
            job_id = await gateway.load_user_job(user_id)
            job_rows = await gateway.load_job_baseline(job_id) if job_id is not None else []
            override_rows = await gateway.load_user_overrides(user_id)
        except FetchError as e:
            log.error("Could not load permissions of user %s: %s", user_id, e)
            return cls(user_id, TreeModel.empty(), {}, set(), policy, load_error=str(e))
        tree, warnings = TreeModel.build(records)
        job_baseline = {node_id for node_id, _row in _rows_to_ids(job_rows, tree, f"job {job_id}")}
        overrides = {
            node_id: bool(row["is_allowed"])
            for node_id, row in _rows_to_ids(override_rows, tree, f"user {user_id}")
        }
        log.info("Opened user editor for %s (job %s, %d overrides)", user_id, job_id, len(overrides))
        return cls(user_id, tree, overrides, job_baseline, policy, job_id=job_id, warnings=warnings)

    @property
    def overrides(self) -> Dict[str, bool]:
        return self.mutator.overrides

    @property
    def job_baseline(self):
        return self.mutator.job_baseline

    def override_of(self, node_id: str) -> Optional[bool]:
        return self.mutator.override_of(node_id)

    def job_value(self, node_id: str) -> bool:
        return self.mutator.job_value(node_id)

    def _capture(self) -> Dict[str, bool]:
        return dict(self.mutator.overrides)

    async def _commit(self, gateway: PersistenceGateway, committed: Dict[str, bool], actor_id: Optional[str]) -> SaveResult:
        diff = self.tracker.diff(committed, self.mutator.job_baseline)
        if diff.is_empty:
            return SaveResult(changed=False)
        insert_rows = diff.insert_rows(self.subject_id)
        delete_rows = diff.delete_rows(self.subject_id)
        await gateway.save_user_overrides(self.subject_id, insert_rows, delete_rows, actor_id=actor_id)
        return SaveResult(changed=True, inserted=len(insert_rows), deleted=len(delete_rows))


class EditorRegistry:
    """
    Open editors of this process, keyed by editor id.

    Editors of the same subject share one save lock, so two editors open on
    one job (or one user) can never write at the same time. Editors not
    accessed for ``idle_ttl`` seconds are evicted, unless a save is running.
    """

    def __init__(self, idle_ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.idle_ttl = idle_ttl
        self.clock = clock
        self._editors: Dict[str, Editor] = {}
        self._last_access: Dict[str, float] = {}
        self._save_locks: Dict[Tuple[str, Any], asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._editors)

    def add(self, editor: Editor) -> Editor:
        self.evict_idle()
        key = (editor.kind, editor.subject_id)
        editor._save_lock = self._save_locks.setdefault(key, asyncio.Lock())
        self._editors[editor.id] = editor
        self._last_access[editor.id] = self.clock()
        return editor

    def get(self, editor_id: str) -> Editor:
        self.evict_idle()
        try:
            editor = self._editors[editor_id]
        except KeyError:
            raise UnknownEditorError(editor_id) from None
        self._last_access[editor_id] = self.clock()
        return editor

    def close(self, editor_id: str, force: bool = False) -> None:
        """
        Drop an editor.

        Raises:
            UnsavedChangesError: if the editor has unsaved changes and ``force`` is false
        """
        editor = self.get(editor_id)
        if editor.has_changes and not force:
            raise UnsavedChangesError(f"Editor {editor_id} has unsaved changes")
        self._drop(editor)
        log.info("Closed %s editor %s for %s", editor.kind, editor_id, editor.subject_id)

    def evict_idle(self) -> List[str]:
        """Drop editors idle for longer than ``idle_ttl``; returns their ids."""
        if self.idle_ttl is None:
            return []
        cutoff = self.clock() - self.idle_ttl
        stale = [
            editor for editor_id, editor in self._editors.items()
            if self._last_access[editor_id] < cutoff and not editor.is_saving
        ]
        for editor in stale:
            self._drop(editor)
            if editor.has_changes:
                log.warning("Evicted idle %s editor %s for %s with unsaved changes", editor.kind, editor.id, editor.subject_id)
            else:
                log.info("Evicted idle %s editor %s for %s", editor.kind, editor.id, editor.subject_id)
        return [editor.id for editor in stale]

    def _drop(self, editor: Editor) -> None:
        del self._editors[editor.id]
        del self._last_access[editor.id]
        key = (editor.kind, editor.subject_id)
        shared = any((other.kind, other.subject_id) == key for other in self._editors.values())
        lock = self._save_locks.get(key)
        if not shared and lock is not None and not lock.locked():
            del self._save_locks[key]
