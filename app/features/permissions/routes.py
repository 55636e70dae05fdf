"""
Permission editing API routes.

Provides endpoints for reading stored permissions, driving job and user
editor sessions (toggle, navigate, bulk, save, close) and checking the
effective permissions of a user.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.rate_limit import limiter
from app.features.permissions.engine.errors import (
    InertEditorError,
    InvalidPathError,
    SaveError,
    SaveInProgressError,
    UnknownNodeError,
    UnsavedChangesError,
)
from app.features.permissions.engine.session import BaselineEditor, Editor, EditorRegistry, ExceptionEditor
from app.features.permissions.dependencies import (
    check_permission,
    default_policy,
    editor_state,
    get_actor_id,
    get_editor,
    get_effective_permissions,
    get_gateway,
    get_registry,
)
from app.features.permissions.gateway import SqlAlchemyGateway
from app.features.permissions.models import JobPermission, UserPermission
from app.features.permissions.schemas import (
    BulkRequest,
    BulkResponse,
    EditorOpen,
    EditorState,
    EffectivePermissionsResponse,
    JobPermissionRow,
    JobPermissionsResponse,
    NavigateRequest,
    PermissionCheckRequest,
    PermissionCheckResponse,
    SaveResponse,
    ToggleRequest,
    UserPermissionRow,
    UserPermissionsResponse,
)
from app.features.users.dependencies import get_user_by_id
from app.features.users.models import Job, User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

Language = Annotated[Optional[str], Query(pattern="^(ar|en)$")]


async def _get_job(db: AsyncSession, job_id: int) -> Job:
    job = await db.get(Job, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


# ============================================================================
# Stored Permission Routes
# ============================================================================

@router.get("/jobs/{job_id}", response_model=JobPermissionsResponse)
async def get_job_permissions(
    job_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get the stored baseline rows of a job."""
    await _get_job(db, job_id)
    result = await db.execute(
        select(JobPermission).where(JobPermission.job_id == job_id).order_by(JobPermission.id)
    )
    return JobPermissionsResponse(
        job_id=job_id,
        rows=[JobPermissionRow.model_validate(row) for row in result.scalars().all()],
    )


@router.get("/users/{user_id}", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user: Annotated[User, Depends(get_user_by_id)],
    db: AsyncSession = Depends(get_db),
):
    """Get the stored overrides of a user and the rows of the user's job."""
    overrides = await db.execute(
        select(UserPermission).where(UserPermission.user_id == user.id).order_by(UserPermission.id)
    )
    job_rows = []
    if user.job_id is not None:
        result = await db.execute(
            select(JobPermission).where(JobPermission.job_id == user.job_id).order_by(JobPermission.id)
        )
        job_rows = [JobPermissionRow.model_validate(row) for row in result.scalars().all()]
    return UserPermissionsResponse(
        user_id=user.id,
        job_id=user.job_id,
        overrides=[UserPermissionRow.model_validate(row) for row in overrides.scalars().all()],
        job_rows=job_rows,
    )


@router.get("/users/{user_id}/effective", response_model=EffectivePermissionsResponse)
async def get_user_effective_permissions(
    user: Annotated[User, Depends(get_user_by_id)],
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Get the effective permission of every catalog node for a user."""
    permissions = await get_effective_permissions(gateway, user)
    return EffectivePermissionsResponse(
        user_id=user.id,
        is_super_admin=user.is_super_admin,
        permissions=permissions,
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_user_permission(
    check: PermissionCheckRequest,
    db: AsyncSession = Depends(get_db),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
):
    """Check whether a user may access one catalog node."""
    user = await get_user_by_id(check.user_id, db)
    try:
        allowed = await check_permission(gateway, user, check.node_id)
    except UnknownNodeError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PermissionCheckResponse(user_id=user.id, node_id=check.node_id, allowed=allowed)


# ============================================================================
# Editor Routes
# ============================================================================

def _opened(editor: Editor, editors: EditorRegistry, language: Optional[str]) -> EditorState:
    if editor.is_inert:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Could not load permissions: {editor.load_error}",
        )
    editors.add(editor)
    log.info("Opened %s editor %s for %s", editor.kind, editor.id, editor.subject_id)
    return editor_state(editor, language)


@router.post("/editors/jobs/{job_id}", response_model=EditorState, status_code=status.HTTP_201_CREATED)
async def open_job_editor(
    job_id: int,
    language: Language = None,
    options: Optional[EditorOpen] = None,
    db: AsyncSession = Depends(get_db),
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    editors: EditorRegistry = Depends(get_registry),
):
    """Open an editor on the baseline of a job."""
    await _get_job(db, job_id)
    policy = (options and options.scope_policy) or default_policy("job")
    editor = await BaselineEditor.open(gateway, job_id, policy)
    return _opened(editor, editors, language)


@router.post("/editors/users/{user_id}", response_model=EditorState, status_code=status.HTTP_201_CREATED)
async def open_user_editor(
    user: Annotated[User, Depends(get_user_by_id)],
    language: Language = None,
    options: Optional[EditorOpen] = None,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    editors: EditorRegistry = Depends(get_registry),
):
    """Open an editor on the overrides of a user."""
    policy = (options and options.scope_policy) or default_policy("user")
    editor = await ExceptionEditor.open(gateway, user.id, policy)
    return _opened(editor, editors, language)


@router.get("/editors/{editor_id}", response_model=EditorState)
async def get_editor_state(
    editor: Annotated[Editor, Depends(get_editor)],
    language: Language = None,
):
    """Get the current view and change flags of an editor."""
    return editor_state(editor, language)


@router.post("/editors/{editor_id}/toggle", response_model=EditorState)
async def toggle_node(
    toggle: ToggleRequest,
    editor: Annotated[Editor, Depends(get_editor)],
    language: Language = None,
):
    """Grant or deny one node, applying the editor's cascade rule."""
    try:
        editor.toggle(toggle.node_id, toggle.value)
    except UnknownNodeError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InertEditorError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return editor_state(editor, language)


@router.post("/editors/{editor_id}/navigate", response_model=EditorState)
async def navigate(
    move: NavigateRequest,
    editor: Annotated[Editor, Depends(get_editor)],
    language: Language = None,
):
    """Move the breadcrumb of an editor."""
    try:
        if move.path is not None:
            editor.path.set_path(move.path)
        elif move.enter is not None:
            editor.path.enter(move.enter)
        elif move.depth is not None:
            editor.path.go_to(move.depth)
        else:
            editor.path.back()
    except InvalidPathError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return editor_state(editor, language)


@router.post("/editors/{editor_id}/bulk", response_model=BulkResponse)
async def bulk_action(
    bulk: BulkRequest,
    editor: Annotated[Editor, Depends(get_editor)],
    language: Language = None,
):
    """
    Select all, deselect all or reset over the current view or the whole tree.

    Without ``confirm`` nothing changes and the response reports how many
    nodes the action would affect.
    """
    try:
        pending = editor.prepare_bulk(bulk.action, bulk.scope)
    except InertEditorError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if bulk.confirm:
        pending.execute()
        log.info(
            "Applied %s over %s to %s editor %s (%d affected)",
            pending.action.value, pending.target.value, editor.kind, editor.id, pending.affected,
        )
    return BulkResponse(
        action=pending.action,
        scope=pending.target,
        node_ids=list(pending.node_ids),
        affected=pending.affected,
        applied=bulk.confirm,
        state=editor_state(editor, language),
    )


@router.post("/editors/{editor_id}/save", response_model=SaveResponse)
@limiter.limit(config.SAVE_RATE_LIMIT)
async def save_editor(
    request: Request,
    editor: Annotated[Editor, Depends(get_editor)],
    language: Language = None,
    gateway: SqlAlchemyGateway = Depends(get_gateway),
    actor_id: Optional[str] = Depends(get_actor_id),
):
    """Commit the editor's changes and advance its snapshot."""
    try:
        result = await editor.save(gateway, actor_id)
    except (SaveInProgressError, InertEditorError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SaveError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return SaveResponse(
        changed=result.changed,
        inserted=result.inserted,
        deleted=result.deleted,
        state=editor_state(editor, language),
    )


@router.delete("/editors/{editor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_editor(
    editor: Annotated[Editor, Depends(get_editor)],
    force: bool = False,
    editors: EditorRegistry = Depends(get_registry),
):
    """Close an editor; refused while it has unsaved changes unless forced."""
    try:
        editors.close(editor.id, force=force)
    except UnsavedChangesError as e:
        raise HTTPException(status_code=409, detail=str(e))
