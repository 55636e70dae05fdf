"""
Service tree arena.

The three catalog levels are flattened into one dict of nodes keyed by their
kind-qualified id, with parent pointers and ordered child lists resolved once
at build time. Every walk uses an explicit stack.
"""
from typing import Dict, Iterable, Iterator, List, Tuple

from app.features.permissions.engine.errors import StructuralError, UnknownNodeError
from app.features.permissions.engine.nodes import Node, NodeKind, NodeRecord
from app.utils import get_logger


log = get_logger(__name__)


class TreeModel:
    """Read-only index over the service → sub-service → sub-sub-service hierarchy."""

    def __init__(self, nodes: Dict[str, Node], roots: List[str]):
        self._nodes = nodes
        self._roots = roots

    @classmethod
    def build(cls, records: Iterable[NodeRecord]) -> Tuple["TreeModel", List[StructuralError]]:
        """
        Build the arena from flat records of all three kinds.

        Records are attached level by level so that a record is only linked once
        its parent is known. A record whose parent does not exist is dropped and
        reported; records under a dropped record are dropped the same way.

        Returns:
            The tree and the list of structural warnings (empty when clean)
        """
        by_kind: Dict[NodeKind, List[NodeRecord]] = {kind: [] for kind in NodeKind}
        for record in records:
            by_kind[record.kind].append(record)

        nodes: Dict[str, Node] = {}
        roots: List[str] = []
        warnings: List[StructuralError] = []

        for kind in sorted(NodeKind, key=lambda k: k.depth):
            for record in by_kind[kind]:
                node_id = record.node_id
                if node_id in nodes:
                    log.warning("Duplicate catalog record %s ignored", node_id)
                    continue
                parent_id = record.parent_id
                if kind.parent_kind is not None:
                    if parent_id is None or parent_id not in nodes:
                        error = StructuralError(node_id, parent_id or f"{kind.parent_kind.value}:?")
                        log.warning("Dropping orphaned catalog record: %s", error)
                        warnings.append(error)
                        continue
                    nodes[parent_id].children.append(node_id)
                else:
                    roots.append(node_id)
                nodes[node_id] = Node(
                    id=node_id,
                    kind=kind,
                    raw_id=record.raw_id,
                    parent_id=parent_id,
                    label_ar=record.label_ar,
                    label_en=record.label_en,
                )

        log.debug("Built service tree: %d nodes, %d roots, %d dropped", len(nodes), len(roots), len(warnings))
        return cls(nodes, roots), warnings

    @classmethod
    def empty(cls) -> "TreeModel":
        return cls({}, [])

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def lookup(self, node_id: str) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(node_id) from None

    def roots(self) -> List[Node]:
        return [self._nodes[node_id] for node_id in self._roots]

    def children(self, node_id: str) -> List[Node]:
        return [self._nodes[child_id] for child_id in self.lookup(node_id).children]

    def ancestors(self, node_id: str) -> List[Node]:
        """Ancestors ordered from the immediate parent up to the root."""
        result = []
        parent_id = self.lookup(node_id).parent_id
        while parent_id is not None:
            parent = self._nodes[parent_id]
            result.append(parent)
            parent_id = parent.parent_id
        return result

    def descendants(self, node_id: str) -> List[Node]:
        """Full subtree below ``node_id`` (excluded), depth-first pre-order."""
        return list(self._walk(self.lookup(node_id).children))

    def all_ids(self) -> List[str]:
        """Every node id in depth-first tree order."""
        return [node.id for node in self._walk(self._roots)]

    def closure(self, node_ids: Iterable[str]) -> List[str]:
        """The given nodes followed by their subtrees, depth-first, without duplicates."""
        seen = set()
        result = []
        for node in self._walk(list(node_ids)):
            if node.id not in seen:
                seen.add(node.id)
                result.append(node.id)
        return result

    def search(self, term: str, language: str) -> List[str]:
        """
        Ids of nodes whose label contains ``term`` plus their ancestors, in tree order.

        Matching is case-insensitive on the label of the requested language.
        An empty term matches everything.
        """
        needle = term.strip().lower()
        if not needle:
            return self.all_ids()
        keep = set()
        for node in self._walk(self._roots):
            if needle in node.label(language).lower():
                keep.add(node.id)
                keep.update(ancestor.id for ancestor in self.ancestors(node.id))
        return [node_id for node_id in self.all_ids() if node_id in keep]

    def _walk(self, start: List[str]) -> Iterator[Node]:
        stack = list(reversed(start))
        while stack:
            node = self.lookup(stack.pop())
            yield node
            stack.extend(reversed(node.children))

