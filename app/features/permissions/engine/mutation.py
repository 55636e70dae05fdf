"""
Single-node toggles and their cascade rules.

BaselineMutator edits the granted set of a job role: enabling a node also
enables its whole ancestor chain so the node stays reachable, while disabling
touches only the node itself. ExceptionMutator edits the override map of one
user: the new value is pushed onto the node and its entire subtree, and each
entry that would merely repeat the job baseline is removed instead of stored.
"""
from typing import AbstractSet, Dict, Mapping, Optional, Set

from app.features.permissions.engine import resolver
from app.features.permissions.engine.tree import TreeModel


class BaselineMutator:
    """Toggles on a job role's baseline set."""

    def __init__(self, tree: TreeModel, baseline: Set[str]):
        self.tree = tree
        self.baseline = baseline

    @property
    def state(self) -> Set[str]:
        return self.baseline

    def copy(self) -> "BaselineMutator":
        return BaselineMutator(self.tree, set(self.baseline))

    def toggle(self, node_id: str, value: bool) -> None:
        self.tree.lookup(node_id)
        if value:
            self.baseline.add(node_id)
            self.baseline.update(ancestor.id for ancestor in self.tree.ancestors(node_id))
        else:
            # Descendants keep their grants.
            self.baseline.discard(node_id)

    def restore(self, node_id: str, snapshot: AbstractSet[str]) -> None:
        """Put ``node_id`` back to its membership in ``snapshot``, without cascading."""
        if node_id in snapshot:
            self.baseline.add(node_id)
        else:
            self.baseline.discard(node_id)

    def effective(self, node_id: str) -> bool:
        return resolver.effective(node_id, self.baseline)


class ExceptionMutator:
    """Toggles on a user's override map, against the baseline of the user's job."""

    def __init__(self, tree: TreeModel, overrides: Dict[str, bool], job_baseline: AbstractSet[str]):
        self.tree = tree
        self.overrides = overrides
        self.job_baseline = job_baseline

    @property
    def state(self) -> Dict[str, bool]:
        return self.overrides

    def copy(self) -> "ExceptionMutator":
        return ExceptionMutator(self.tree, dict(self.overrides), self.job_baseline)

    def toggle(self, node_id: str, value: bool) -> None:
        self.tree.lookup(node_id)
        self._set(node_id, value)
        for descendant in self.tree.descendants(node_id):
            self._set(descendant.id, value)

    def restore(self, node_id: str, snapshot: Mapping[str, bool]) -> None:
        """Put the override of ``node_id`` back to exactly its state in ``snapshot``."""
        if node_id in snapshot:
            self.overrides[node_id] = snapshot[node_id]
        else:
            self.overrides.pop(node_id, None)

    def effective(self, node_id: str) -> bool:
        return resolver.effective(node_id, self.job_baseline, self.overrides)

    def job_value(self, node_id: str) -> bool:
        return node_id in self.job_baseline

    def override_of(self, node_id: str) -> Optional[bool]:
        return self.overrides.get(node_id)

    def _set(self, node_id: str, value: bool) -> None:
        if value == self.job_value(node_id):
            self.overrides.pop(node_id, None)
        else:
            self.overrides[node_id] = value
