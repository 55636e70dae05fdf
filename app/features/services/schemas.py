"""
Pydantic schemas for the service catalog.
"""
from typing import List
from pydantic import BaseModel, Field


class ServiceTreeNode(BaseModel):
    """One catalog node with its children."""
    id: str = Field(..., description="Node id such as 's:1', 'ss:4' or 'sss:9'")
    kind: str
    raw_id: int
    label: str
    children: List["ServiceTreeNode"] = []


class ServiceTreeResponse(BaseModel):
    """Catalog tree, possibly filtered by a label search."""
    language: str
    total: int = Field(..., description="Nodes in the unfiltered catalog")
    roots: List[ServiceTreeNode]
    warnings: List[str] = []


ServiceTreeNode.model_rebuild()
