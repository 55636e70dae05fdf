"""
Service catalog API routes.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from app.core import config
from app.features.permissions.dependencies import get_gateway
from app.features.permissions.engine.errors import FetchError
from app.features.permissions.engine.tree import TreeModel
from app.features.permissions.gateway import SqlAlchemyGateway
from app.features.services.schemas import ServiceTreeNode, ServiceTreeResponse
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def _nest(tree: TreeModel, keep: set, language: str) -> list[ServiceTreeNode]:
    """Nested nodes limited to ``keep``, built bottom-up without recursion."""
    built: dict[str, ServiceTreeNode] = {}
    for node_id in reversed(tree.all_ids()):
        if node_id not in keep:
            continue
        node = tree.lookup(node_id)
        built[node_id] = ServiceTreeNode(
            id=node.id,
            kind=node.kind.value,
            raw_id=node.raw_id,
            label=node.label(language),
            children=[built[child_id] for child_id in node.children if child_id in built],
        )
    return [built[node.id] for node in tree.roots() if node.id in built]


@router.get("/tree", response_model=ServiceTreeResponse)
async def get_service_tree(
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    q: Optional[str] = None,
    language: Annotated[Optional[str], Query(pattern="^(ar|en)$")] = None,
):
    """Get the service catalog as a tree, filtered to nodes matching ``q`` and their ancestors."""
    language = language or config.DEFAULT_LANGUAGE
    try:
        records = await gateway.load_tree()
    except FetchError as e:
        log.error("Could not load the service catalog: %s", e)
        raise HTTPException(status_code=503, detail=str(e))
    tree, warnings = TreeModel.build(records)
    keep = set(tree.search(q or "", language))
    return ServiceTreeResponse(
        language=language,
        total=len(tree),
        roots=_nest(tree, keep, language),
        warnings=[str(w) for w in warnings],
    )
