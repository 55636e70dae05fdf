"""
Pydantic schemas for permission editing.

Request and response models for stored permission rows, editor sessions,
bulk actions and permission checks.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

from app.features.permissions.engine.scope import BulkAction, BulkTarget, ScopePolicy


# ============================================================================
# Stored Row Schemas
# ============================================================================

class KindRef(BaseModel):
    """Reference to one catalog level; exactly one field is set."""
    service_id: Optional[int] = None
    sub_service_id: Optional[int] = None
    sub_sub_service_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def exactly_one_reference(self) -> "KindRef":
        populated = [
            v for v in (self.service_id, self.sub_service_id, self.sub_sub_service_id)
            if v is not None
        ]
        if len(populated) != 1:
            raise ValueError("Exactly one of service_id, sub_service_id, sub_sub_service_id must be set")
        return self


class JobPermissionRow(KindRef):
    """Stored baseline row of a job."""
    job_id: int
    actor_id: Optional[str] = None


class UserPermissionRow(KindRef):
    """Stored override row of a user."""
    user_id: str
    is_allowed: bool
    actor_id: Optional[str] = None


class JobPermissionsResponse(BaseModel):
    """Stored baseline of a job."""
    job_id: int
    rows: List[JobPermissionRow]


class UserPermissionsResponse(BaseModel):
    """Stored overrides of a user together with the rows of the user's job."""
    user_id: str
    job_id: Optional[int] = None
    overrides: List[UserPermissionRow]
    job_rows: List[JobPermissionRow]


# ============================================================================
# Editor Schemas
# ============================================================================

class EditorOpen(BaseModel):
    """Options for opening an editor."""
    scope_policy: Optional[ScopePolicy] = Field(None, description="Bulk scope; defaults per editor kind")


class Crumb(BaseModel):
    """One breadcrumb entry."""
    id: str
    label: str


class ViewRow(BaseModel):
    """A node listed in the current view."""
    id: str
    kind: str
    label: str
    effective: bool
    override: Optional[bool] = None
    job_value: bool
    has_children: bool
    enabled_count: int = Field(..., description="Granted descendants")
    total_count: int = Field(..., description="All descendants")


class EditorState(BaseModel):
    """Current state of an editor session."""
    id: str
    kind: str
    subject_id: str
    scope_policy: ScopePolicy
    load_error: Optional[str] = None
    warnings: List[str] = []
    path: List[Crumb]
    rows: List[ViewRow]
    enabled_count: int
    total_count: int
    has_changes: bool
    has_visible_changes: bool
    all_visible_selected: bool
    none_visible_selected: bool
    is_saving: bool


class ToggleRequest(BaseModel):
    """Set one node granted or denied."""
    node_id: str = Field(..., min_length=3, description="Node id such as 's:1', 'ss:4' or 'sss:9'")
    value: bool


class NavigateRequest(BaseModel):
    """
    Move the breadcrumb.

    Exactly one of the fields is used, checked in this order:
    ``path`` replaces the breadcrumb, ``enter`` descends into a listed node,
    ``depth`` truncates the breadcrumb and ``back`` pops one entry.
    """
    path: Optional[List[str]] = None
    enter: Optional[str] = None
    depth: Optional[int] = Field(None, ge=0)
    back: bool = False

    @model_validator(mode="after")
    def one_move(self) -> "NavigateRequest":
        moves = [self.path is not None, self.enter is not None, self.depth is not None, self.back]
        if sum(moves) != 1:
            raise ValueError("Provide exactly one of path, enter, depth or back")
        return self


class BulkRequest(BaseModel):
    """Bulk action over the current view or the whole tree."""
    action: BulkAction
    scope: BulkTarget = BulkTarget.VIEW
    confirm: bool = Field(False, description="Apply the action; otherwise only report what it would do")


class BulkResponse(BaseModel):
    """Prepared or applied bulk action."""
    action: BulkAction
    scope: BulkTarget
    node_ids: List[str]
    affected: int = Field(..., description="Nodes whose effective permission changes")
    applied: bool
    state: EditorState


class SaveResponse(BaseModel):
    """Outcome of saving an editor."""
    changed: bool
    inserted: int
    deleted: int
    state: EditorState


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Ask whether a user may access one node."""
    user_id: str
    node_id: str = Field(..., min_length=3)


class PermissionCheckResponse(BaseModel):
    """Result of a permission check."""
    user_id: str
    node_id: str
    allowed: bool


class EffectivePermissionsResponse(BaseModel):
    """Effective permission of every catalog node for one user."""
    user_id: str
    general_access: bool = True
    is_super_admin: bool
    permissions: Dict[str, bool]
