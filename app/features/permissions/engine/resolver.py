"""
Effective permission resolution.

A job subject is granted a node when the node is in its baseline set. A user
subject takes its override for the node when one exists and falls back to the
baseline of its job otherwise.
"""
from typing import AbstractSet, Iterable, Mapping, Optional


def effective(
    node_id: str,
    baseline: AbstractSet[str],
    override: Optional[Mapping[str, bool]] = None,
) -> bool:
    if override is not None and node_id in override:
        return override[node_id]
    return node_id in baseline


def count_enabled(
    node_ids: Iterable[str],
    baseline: AbstractSet[str],
    override: Optional[Mapping[str, bool]] = None,
) -> int:
    """Number of ``node_ids`` that resolve to granted."""
    return sum(1 for node_id in node_ids if effective(node_id, baseline, override))
