"""HTTP surface for the admin UI.

Three synchronous JSON endpoints. Authentication happens upstream; the
authenticated user id arrives in the ``X-Actor-Id`` header and is checked
against the profile's access control by the jobs themselves.

Usage:
    from tenant_backup.api import create_app
    from tenant_backup.factory import build_context

    app = create_app(build_context())
"""

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tenant_backup.errors import InvalidStateError, NotFoundError, UnauthorizedError
from tenant_backup.factory import BackupContext
from tenant_backup.jobs import ExportDocument, export_tenant, run_backup, run_restore
from tenant_backup.ledger.models import BackupType, ConflictStrategy

router = APIRouter()


class BackupRequest(BaseModel):
    type: BackupType = "full"
    tables: list[str] | None = None
    notes: str | None = None


class RestoreRequest(BaseModel):
    backup_job_id: str
    target_tables: list[str] | None = None
    conflict_strategy: ConflictStrategy = "skip"
    create_safety_backup: bool = False
    notes: str | None = None


class ExportRequest(BaseModel):
    tenant_id: str = Field(min_length=1)


def get_context(request: Request) -> BackupContext:
    """Dependency returning the collaborators attached to the app."""
    return request.app.state.backup_context


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, UnauthorizedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, InvalidStateError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


_CALLER_ERRORS = (UnauthorizedError, NotFoundError, InvalidStateError, ValueError)


@router.post("/backup")
async def create_backup(
    body: BackupRequest,
    x_actor_id: str = Header(...),
    context: BackupContext = Depends(get_context),
):
    """Run a backup job and return its summary (500 when the job failed)."""
    try:
        job = await run_backup(
            context.adapter,
            context.storage,
            context.ledger,
            backup_type=body.type,
            tables=body.tables,
            notes=body.notes or "",
            actor_id=x_actor_id,
            catalog=context.catalog,
            access=context.access,
            settings=context.settings,
        )
    except _CALLER_ERRORS as e:
        raise _http_error(e) from e

    payload = job.model_dump(mode="json")
    if job.status == "failed":
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
    return payload


@router.post("/restore")
async def create_restore(
    body: RestoreRequest,
    x_actor_id: str = Header(...),
    context: BackupContext = Depends(get_context),
):
    """Restore a completed backup and return the restore log."""
    try:
        log = await run_restore(
            context.adapter,
            context.storage,
            context.ledger,
            backup_job_id=body.backup_job_id,
            target_tables=body.target_tables,
            conflict_strategy=body.conflict_strategy,
            create_safety_backup=body.create_safety_backup,
            notes=body.notes,
            actor_id=x_actor_id,
            catalog=context.catalog,
            access=context.access,
            settings=context.settings,
        )
    except _CALLER_ERRORS as e:
        raise _http_error(e) from e

    payload = log.model_dump(mode="json")
    if log.status == "failed":
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
    return payload


@router.post("/export", response_model=ExportDocument)
async def create_export(
    body: ExportRequest,
    x_actor_id: str = Header(...),
    context: BackupContext = Depends(get_context),
) -> ExportDocument:
    """Export one tenant inline."""
    try:
        return await export_tenant(
            context.adapter,
            context.ledger,
            body.tenant_id,
            actor_id=x_actor_id,
            catalog=context.catalog,
            access=context.access,
            settings=context.settings,
        )
    except _CALLER_ERRORS as e:
        raise _http_error(e) from e


def create_app(context: BackupContext, prefix: str = "/api/admin") -> FastAPI:
    """Build a FastAPI app serving the router with ``context`` attached."""
    app = FastAPI(title="tenant-backup")
    app.state.backup_context = context
    app.include_router(router, prefix=prefix)
    return app
