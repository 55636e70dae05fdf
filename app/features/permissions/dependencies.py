"""
Permission editing dependencies and helpers.

Implements:
- The process-wide editor registry and per-request gateway
- Editor state serialization for responses
- Effective permission lookups for the check endpoints
"""
from typing import Annotated, Dict, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.features.permissions.engine import resolver
from app.features.permissions.engine.errors import FetchError, UnknownEditorError, UnknownNodeError
from app.features.permissions.engine.nodes import from_kind_ref
from app.features.permissions.engine.scope import ScopePolicy
from app.features.permissions.engine.session import Editor, EditorRegistry
from app.features.permissions.engine.tree import TreeModel
from app.features.permissions.gateway import SqlAlchemyGateway
from app.features.permissions.schemas import Crumb, EditorState, ViewRow
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

registry = EditorRegistry(idle_ttl=config.EDITOR_IDLE_TTL or None)


# ============================================================================
# Dependencies
# ============================================================================

def get_registry() -> EditorRegistry:
    """Editor registry; overridden in tests with a fresh one."""
    return registry


def get_gateway(db: Annotated[AsyncSession, Depends(get_db)]) -> SqlAlchemyGateway:
    return SqlAlchemyGateway(db)


def get_editor(
    editor_id: str,
    editors: Annotated[EditorRegistry, Depends(get_registry)],
) -> Editor:
    try:
        return editors.get(editor_id)
    except UnknownEditorError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Editor not found")


def get_actor_id(x_actor_id: Annotated[Optional[str], Header()] = None) -> Optional[str]:
    """
    Id of the admin performing the edit.

    Authorization of the admin happens upstream; the id is only recorded on
    the rows a save writes.
    """
    return x_actor_id


def default_policy(kind: str) -> ScopePolicy:
    return ScopePolicy(config.JOB_SCOPE_POLICY if kind == "job" else config.USER_SCOPE_POLICY)


# ============================================================================
# Serialization
# ============================================================================

def editor_state(editor: Editor, language: Optional[str] = None) -> EditorState:
    """Build the response model for an editor's current view."""
    language = language or config.DEFAULT_LANGUAGE
    rows = []
    for node in editor.path.view():
        enabled, total = editor.subtree_counts(node.id)
        rows.append(ViewRow(
            id=node.id,
            kind=node.kind.value,
            label=node.label(language),
            effective=editor.effective(node.id),
            override=editor.override_of(node.id),
            job_value=editor.job_value(node.id),
            has_children=node.has_children,
            enabled_count=enabled,
            total_count=total,
        ))
    enabled, total = editor.totals()
    return EditorState(
        id=editor.id,
        kind=editor.kind,
        subject_id=str(editor.subject_id),
        scope_policy=editor.bulk.policy,
        load_error=editor.load_error,
        warnings=[str(w) for w in editor.warnings],
        path=[Crumb(id=node_id, label=label) for node_id, label in editor.path.labels(language)],
        rows=rows,
        enabled_count=enabled,
        total_count=total,
        has_changes=editor.has_changes,
        has_visible_changes=editor.bulk.has_visible_changes,
        all_visible_selected=editor.bulk.all_visible_selected,
        none_visible_selected=editor.bulk.none_visible_selected,
        is_saving=editor.is_saving,
    )


# ============================================================================
# Effective Permission Lookups
# ============================================================================

async def get_effective_permissions(gateway: SqlAlchemyGateway, user: User) -> Dict[str, bool]:
    """
    Effective permission of every catalog node for ``user``.

    Super admins are granted every node.

    Raises:
        HTTPException: 503 if the permission data could not be loaded
    """
    try:
        tree, _warnings = TreeModel.build(await gateway.load_tree())
        if user.is_super_admin:
            return {node_id: True for node_id in tree.all_ids()}
        job_rows = await gateway.load_job_baseline(user.job_id) if user.job_id is not None else []
        override_rows = await gateway.load_user_overrides(user.id)
    except FetchError as e:
        log.error("Could not resolve permissions of user %s: %s", user.id, e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    baseline = set()
    for row in job_rows:
        try:
            baseline.add(from_kind_ref(row))
        except ValueError:
            log.warning("Skipping malformed permission row of job %s", user.job_id)
    overrides = {}
    for row in override_rows:
        try:
            overrides[from_kind_ref(row)] = bool(row["is_allowed"])
        except ValueError:
            log.warning("Skipping malformed permission row of user %s", user.id)
    return {node_id: resolver.effective(node_id, baseline, overrides) for node_id in tree.all_ids()}


async def check_permission(gateway: SqlAlchemyGateway, user: User, node_id: str) -> bool:
    """
    Whether ``user`` may access ``node_id``.

    Raises:
        UnknownNodeError: if the node is not in the catalog
    """
    permissions = await get_effective_permissions(gateway, user)
    if node_id not in permissions:
        raise UnknownNodeError(node_id)
    return permissions[node_id]
