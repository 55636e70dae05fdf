"""
Breadcrumb navigation and bulk actions scoped to the current view.

The view is the list of nodes directly under the last breadcrumb entry (or the
roots when the breadcrumb is empty). A scope policy decides which ids a bulk
action reaches from that view: only the listed rows, or the rows together with
everything below them.
"""
import enum
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

from app.features.permissions.engine.errors import InvalidPathError
from app.features.permissions.engine.mutation import BaselineMutator, ExceptionMutator
from app.features.permissions.engine.nodes import Node
from app.features.permissions.engine.tracker import BaselineTracker, OverrideTracker
from app.features.permissions.engine.tree import TreeModel


Mutator = Union[BaselineMutator, ExceptionMutator]
Tracker = Union[BaselineTracker, OverrideTracker]


class ScopePolicy(str, enum.Enum):
    ROW = "row"
    SUBTREE = "subtree"


class BulkAction(str, enum.Enum):
    SELECT_ALL = "select_all"
    DESELECT_ALL = "deselect_all"
    RESET = "reset"


class BulkTarget(str, enum.Enum):
    VIEW = "view"
    ALL = "all"


class NavigationPath:
    """Breadcrumb descent through the tree."""

    def __init__(self, tree: TreeModel):
        self.tree = tree
        self.ids: List[str] = []

    @property
    def terminal(self) -> Optional[str]:
        return self.ids[-1] if self.ids else None

    def view(self) -> List[Node]:
        if self.terminal is None:
            return self.tree.roots()
        return self.tree.children(self.terminal)

    def enter(self, node_id: str) -> None:
        """Descend into a listed node that has children."""
        listed = {node.id: node for node in self.view()}
        node = listed.get(node_id)
        if node is None:
            raise InvalidPathError(f"{node_id} is not listed in the current view")
        if not node.has_children:
            raise InvalidPathError(f"{node_id} has no children to show")
        self.ids.append(node_id)

    def back(self) -> None:
        if self.ids:
            self.ids.pop()

    def go_to(self, depth: int) -> None:
        """Truncate the breadcrumb to its first ``depth`` entries; 0 shows the roots."""
        if depth < 0 or depth > len(self.ids):
            raise InvalidPathError(f"Depth {depth} is outside the breadcrumb (length {len(self.ids)})")
        del self.ids[depth:]

    def set_path(self, node_ids: Sequence[str]) -> None:
        """Replace the breadcrumb; each id must be a child of the previous one."""
        candidate = NavigationPath(self.tree)
        for node_id in node_ids:
            candidate.enter(node_id)
        self.ids = candidate.ids

    def labels(self, language: str) -> List[Tuple[str, str]]:
        return [(node_id, self.tree.lookup(node_id).label(language)) for node_id in self.ids]


@dataclass
class PendingBulkAction:
    """
    A prepared bulk action waiting for the caller's go-ahead.

    ``affected`` counts the nodes whose effective permission would change.
    Nothing is modified until ``execute`` is called.
    """
    action: BulkAction
    target: BulkTarget
    node_ids: Tuple[str, ...]
    affected: int
    _run: Callable[[], None] = field(repr=False)

    def execute(self) -> None:
        self._run()


class ScopedBulkEditor:
    """Bulk select, deselect and reset over the ids reachable from the current view."""

    def __init__(self, tree: TreeModel, mutator: Mutator, tracker: Tracker, path: NavigationPath, policy: ScopePolicy):
        self.tree = tree
        self.mutator = mutator
        self.tracker = tracker
        self.path = path
        self.policy = policy

    def scope_ids(self, target: BulkTarget = BulkTarget.VIEW) -> List[str]:
        if target is BulkTarget.ALL:
            return self.tree.all_ids()
        listed = [node.id for node in self.path.view()]
        if self.policy is ScopePolicy.ROW:
            return listed
        return self.tree.closure(listed)

    def select_all_visible(self) -> None:
        self.apply(BulkAction.SELECT_ALL, self.scope_ids())

    def deselect_all_visible(self) -> None:
        self.apply(BulkAction.DESELECT_ALL, self.scope_ids())

    def reset_visible(self) -> None:
        self.apply(BulkAction.RESET, self.scope_ids())

    def apply(self, action: BulkAction, node_ids: Sequence[str], mutator: Optional[Mutator] = None) -> None:
        mutator = mutator or self.mutator
        if action is BulkAction.RESET:
            snapshot = self.tracker.snapshot
            for node_id in node_ids:
                mutator.restore(node_id, snapshot)
            return
        value = action is BulkAction.SELECT_ALL
        for node_id in node_ids:
            mutator.toggle(node_id, value)

    def prepare(self, action: BulkAction, target: BulkTarget = BulkTarget.VIEW) -> PendingBulkAction:
        node_ids = tuple(self.scope_ids(target))
        trial = self.mutator.copy()
        self.apply(action, node_ids, trial)
        affected = sum(
            1 for node_id in self.tree.all_ids()
            if trial.effective(node_id) != self.mutator.effective(node_id)
        )
        return PendingBulkAction(
            action=action,
            target=target,
            node_ids=node_ids,
            affected=affected,
            _run=lambda: self.apply(action, node_ids),
        )

    @property
    def all_visible_selected(self) -> bool:
        node_ids = self.scope_ids()
        return bool(node_ids) and all(self.mutator.effective(node_id) for node_id in node_ids)

    @property
    def none_visible_selected(self) -> bool:
        return not any(self.mutator.effective(node_id) for node_id in self.scope_ids())

    @property
    def has_visible_changes(self) -> bool:
        return self.tracker.has_changes_within(self.mutator.state, self.scope_ids())
