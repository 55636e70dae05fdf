"""
Snapshots, change detection and commit payloads.

The snapshot is the state last read from or written to storage. Job baselines
are committed as a full replacement of the job's rows; user overrides are
committed as the smallest insert/delete transaction that moves the stored rows
from the snapshot to the current map.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import AbstractSet, Any, Dict, FrozenSet, Iterable, List, Mapping, Tuple

from app.features.permissions.engine.nodes import parse_node_id, to_kind_ref


def _node_order(node_id: str) -> Tuple[int, int]:
    kind, raw_id = parse_node_id(node_id)
    return kind.depth, raw_id


class BaselineTracker:
    """Tracks a job role's granted set against its last saved value."""

    def __init__(self, initial: Iterable[str]):
        self.snapshot: FrozenSet[str] = frozenset(initial)

    def has_changes(self, current: AbstractSet[str]) -> bool:
        return set(current) != self.snapshot

    def has_changes_within(self, current: AbstractSet[str], node_ids: Iterable[str]) -> bool:
        return any((node_id in current) != (node_id in self.snapshot) for node_id in node_ids)

    def payload(self, current: AbstractSet[str]) -> List[Dict[str, Any]]:
        """One kind-ref row per granted node; replaces every stored row of the job."""
        return [to_kind_ref(node_id) for node_id in sorted(current, key=_node_order)]

    def advance(self, committed: Iterable[str]) -> None:
        self.snapshot = frozenset(committed)


@dataclass
class OverrideDiff:
    """
    Changes between the saved override map and the current one.

    ``inserted`` holds new overrides, ``updated`` overrides whose value flipped
    (stored as a delete of the old row plus an insert of the new one) and
    ``deleted`` overrides that collapsed back to inheritance.
    """
    inserted: List[Tuple[str, bool]] = field(default_factory=list)
    updated: List[Tuple[str, bool, bool]] = field(default_factory=list)
    deleted: List[Tuple[str, bool]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.inserted or self.updated or self.deleted)

    def insert_rows(self, user_id: str) -> List[Dict[str, Any]]:
        rows = [(node_id, value) for node_id, value in self.inserted]
        rows += [(node_id, new) for node_id, _old, new in self.updated]
        return [
            {"user_id": user_id, **to_kind_ref(node_id), "is_allowed": value}
            for node_id, value in rows
        ]

    def delete_rows(self, user_id: str) -> List[Dict[str, Any]]:
        node_ids = [node_id for node_id, _old, _new in self.updated]
        node_ids += [node_id for node_id, _old in self.deleted]
        return [{"user_id": user_id, **to_kind_ref(node_id)} for node_id in node_ids]

    def apply_to(self, saved: Mapping[str, bool]) -> Dict[str, bool]:
        """Replay the diff on ``saved`` and return the resulting override map."""
        result = dict(saved)
        for node_id, _old, _new in self.updated:
            result.pop(node_id, None)
        for node_id, _old in self.deleted:
            result.pop(node_id, None)
        for node_id, value in self.inserted:
            result[node_id] = value
        for node_id, _old, new in self.updated:
            result[node_id] = new
        return result


class OverrideTracker:
    """Tracks a user's override map against its last saved value."""

    def __init__(self, initial: Mapping[str, bool]):
        self.snapshot: Mapping[str, bool] = MappingProxyType(dict(initial))

    def has_changes(self, current: Mapping[str, bool]) -> bool:
        return dict(current) != dict(self.snapshot)

    def has_changes_within(self, current: Mapping[str, bool], node_ids: Iterable[str]) -> bool:
        return any(current.get(node_id) != self.snapshot.get(node_id) for node_id in node_ids)

    def diff(self, current: Mapping[str, bool], job_baseline: AbstractSet[str]) -> OverrideDiff:
        result = OverrideDiff()
        for node_id in sorted(current, key=_node_order):
            value = current[node_id]
            if node_id not in self.snapshot:
                if value != (node_id in job_baseline):
                    result.inserted.append((node_id, value))
            elif self.snapshot[node_id] != value:
                result.updated.append((node_id, self.snapshot[node_id], value))
        for node_id in sorted(self.snapshot, key=_node_order):
            old = self.snapshot[node_id]
            if node_id not in current and old != (node_id in job_baseline):
                result.deleted.append((node_id, old))
        return result

    def advance(self, committed: Mapping[str, bool]) -> None:
        self.snapshot = MappingProxyType(dict(committed))
