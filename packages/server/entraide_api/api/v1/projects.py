"""
Project endpoints: CRUD, lifecycle transitions, volunteers, tool requests,
offering responses.

Reads are public; every mutation requires a bearer token.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from entraide_api.api.v1.deps import RequestPayload, get_repository, read_payload
from entraide_api.core.auth import AuthenticatedUser, get_current_user
from entraide_api.services import offerings as offering_service
from entraide_api.services import projects as project_service
from entraide_api.services import volunteers as volunteer_service
from entraide_api.services.kinds import RESOURCE_KINDS
from entraide_api.services.repository import Repository
from entraide_shared.schemas.common import ResourceKind

router = APIRouter()


@router.post("", status_code=201)
async def create_project(
    auth: AuthenticatedUser = Depends(get_current_user),
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
):
    """Create an aid request owned by the caller."""
    project = await project_service.create_project(repo, auth.user_id, payload.fields, form=payload.form)
    return {"message": "Project created successfully", "project": project}


@router.get("")
async def list_projects(
    status: Optional[str] = None,
    repo: Repository = Depends(get_repository),
):
    """List projects, newest first, optionally filtered by status."""
    projects = await project_service.list_projects(repo, status)
    return {"message": "Projects retrieved successfully", "projects": projects, "total": len(projects)}


@router.get("/{project_id}")
async def get_project(project_id: int, repo: Repository = Depends(get_repository)):
    project = await project_service.get_project(repo, project_id)
    return {"message": "Project retrieved successfully", "project": project}


@router.patch("/{project_id}")
async def update_project(
    project_id: int,
    auth: AuthenticatedUser = Depends(get_current_user),
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
):
    project = await project_service.update_project(
        repo, auth.user_id, project_id, payload.fields, form=payload.form
    )
    return {"message": "Project updated successfully", "project": project}


@router.delete("/{project_id}")
async def delete_project(
    project_id: int,
    auth: AuthenticatedUser = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    await project_service.delete_project(repo, auth.user_id, project_id)
    return {"message": "Project deleted successfully"}


@router.patch("/{project_id}/status")
async def set_project_status(
    project_id: int,
    auth: AuthenticatedUser = Depends(get_current_user),
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
):
    """Move a project through its lifecycle (creator only)."""
    project = await project_service.set_status(repo, auth.user_id, project_id, payload.fields.get("status"))
    return {"message": "Project status updated successfully", "project": project}


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------


@router.post("/{project_id}/volunteer", status_code=201)
async def join_project(
    project_id: int,
    auth: AuthenticatedUser = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    volunteer = await volunteer_service.join_project(repo, auth.user_id, project_id)
    return {"message": "Successfully joined project as volunteer", "volunteer": volunteer}


@router.delete("/{project_id}/volunteer")
async def leave_project(
    project_id: int,
    auth: AuthenticatedUser = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    await volunteer_service.leave_project(repo, auth.user_id, project_id)
    return {"message": "Successfully left project"}


# ---------------------------------------------------------------------------
# Tool requests and offerings
# ---------------------------------------------------------------------------


@router.post("/{project_id}/request-outil", status_code=201)
async def request_outil(
    project_id: int,
    auth: AuthenticatedUser = Depends(get_current_user),
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
):
    outil_id = payload.fields.get("outilId", payload.fields.get("outil_id"))
    if payload.form and isinstance(outil_id, str) and outil_id.strip().isdigit():
        outil_id = int(outil_id)
    request = await project_service.request_outil(repo, auth.user_id, project_id, outil_id)
    return {"message": "Tool requested successfully", "request": request}


@router.patch("/{project_id}/offerings/{kind}/{offering_id}")
async def respond_to_offering(
    project_id: int,
    kind: ResourceKind,
    offering_id: int,
    auth: AuthenticatedUser = Depends(get_current_user),
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
):
    """Accept or decline a pending offering (project creator only)."""
    offering = await offering_service.respond_to_offering(
        repo,
        RESOURCE_KINDS[kind],
        project_id,
        offering_id,
        auth.user_id,
        payload.fields.get("status"),
    )
    return {"message": f"Offering {offering.status.value}", "offering": offering}
