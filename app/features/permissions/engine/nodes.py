"""
Node identities and kind-qualified references.

Every catalog entry is addressed by a string id of the form ``<prefix>:<int>``:
``s:7`` for a service, ``ss:12`` for a sub-service and ``sss:3`` for a
sub-sub-service. Persistence rows carry the same identity as three mutually
exclusive columns; the helpers here convert between the two shapes.
"""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple


class NodeKind(str, enum.Enum):
    SERVICE = "s"
    SUB_SERVICE = "ss"
    SUB_SUB_SERVICE = "sss"

    @property
    def column(self) -> str:
        """Name of the kind reference column on permission rows."""
        return _COLUMNS[self]

    @property
    def depth(self) -> int:
        return _DEPTHS[self]

    @property
    def parent_kind(self) -> Optional["NodeKind"]:
        if self is NodeKind.SUB_SERVICE:
            return NodeKind.SERVICE
        if self is NodeKind.SUB_SUB_SERVICE:
            return NodeKind.SUB_SERVICE
        return None


_COLUMNS = {
    NodeKind.SERVICE: "service_id",
    NodeKind.SUB_SERVICE: "sub_service_id",
    NodeKind.SUB_SUB_SERVICE: "sub_sub_service_id",
}
_DEPTHS = {
    NodeKind.SERVICE: 0,
    NodeKind.SUB_SERVICE: 1,
    NodeKind.SUB_SUB_SERVICE: 2,
}

KIND_COLUMNS: Tuple[str, ...] = ("service_id", "sub_service_id", "sub_sub_service_id")


def make_node_id(kind: NodeKind, raw_id: int) -> str:
    return f"{kind.value}:{raw_id}"


def parse_node_id(node_id: str) -> Tuple[NodeKind, int]:
    """
    Split ``"ss:12"`` into ``(NodeKind.SUB_SERVICE, 12)``.

    Raises:
        ValueError: if the prefix is unknown or the numeric part is not an int
    """
    prefix, sep, raw = node_id.partition(":")
    if not sep:
        raise ValueError(f"Malformed node id {node_id!r}")
    try:
        kind = NodeKind(prefix)
        return kind, int(raw)
    except ValueError:
        raise ValueError(f"Malformed node id {node_id!r}") from None


def to_kind_ref(node_id: str) -> Dict[str, Optional[int]]:
    """Row fragment with exactly one populated kind reference."""
    kind, raw_id = parse_node_id(node_id)
    ref: Dict[str, Optional[int]] = {column: None for column in KIND_COLUMNS}
    ref[kind.column] = raw_id
    return ref


def from_kind_ref(row: Mapping[str, Any]) -> str:
    """
    Node id identified by a kind-ref row.

    Raises:
        ValueError: if the row populates zero or more than one kind reference
    """
    populated = [kind for kind in NodeKind if row.get(kind.column) is not None]
    if len(populated) != 1:
        raise ValueError(
            f"Permission row must reference exactly one catalog level, got {len(populated)}"
        )
    kind = populated[0]
    return make_node_id(kind, int(row[kind.column]))


@dataclass
class NodeRecord:
    """Flat catalog record as loaded from storage."""
    kind: NodeKind
    raw_id: int
    parent_raw_id: Optional[int] = None
    label_ar: str = ""
    label_en: str = ""

    @property
    def node_id(self) -> str:
        return make_node_id(self.kind, self.raw_id)

    @property
    def parent_id(self) -> Optional[str]:
        parent_kind = self.kind.parent_kind
        if parent_kind is None or self.parent_raw_id is None:
            return None
        return make_node_id(parent_kind, self.parent_raw_id)


@dataclass
class Node:
    id: str
    kind: NodeKind
    raw_id: int
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    label_ar: str = ""
    label_en: str = ""

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    def label(self, language: str) -> str:
        if language == "en":
            return self.label_en or self.label_ar
        return self.label_ar or self.label_en
