"""Registrant router - registration, roster views and spreadsheet import/export."""

from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.auth.schemas import Identity
from app.common.config import get_settings
from app.common.db import get_db
from app.common.exporter import XLSX_MEDIA_TYPE, xlsx_response
from app.common.guard import single_flight
from app.common.security import get_current_identity, require_admin
from app.registrants import schemas as reg_schema
from app.registrants.exporter import export_filename
from app.registrants.service import RegistrantService
from app.registrants.store import RecordStore, SqlRegistrantStore
from app.registrants.template import TEMPLATE_FILENAME
from app.registrants.views import parse_group_selector

router = APIRouter()
settings = get_settings()


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return SqlRegistrantStore(db)


def get_service(store: RecordStore = Depends(get_store)) -> RegistrantService:
    return RegistrantService(store)


def _validate_spreadsheet_upload(file: UploadFile) -> None:
    """Reject anything that is not an .xlsx upload before it reaches the importer."""
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing filename")

    suffix = Path(file.filename).suffix.lower()
    if file.content_type != XLSX_MEDIA_TYPE or suffix not in settings.allowed_upload_extensions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload an Excel (.xlsx) file."
        )

    file.file.seek(0, 2)  # Seek to end
    file_size = file.file.tell()
    file.file.seek(0)

    if file_size > settings.max_upload_size_mb * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size: {settings.max_upload_size_mb}MB"
        )


@router.post("", response_model=reg_schema.RegistrationResponse, status_code=status.HTTP_201_CREATED)
def register_participant(
    payload: reg_schema.RegistrantCreate,
    identity: Identity = Depends(require_admin),
    service: RegistrantService = Depends(get_service),
):
    """Register a single participant (admins only)."""
    return service.register(payload)


@router.get("", response_model=List[reg_schema.RegistrantRead])
def list_participants(
    group: str = Query("all", description="'all', 'unassigned' or a group number"),
    order: str = Query("recent", description="'recent' (newest first) or 'group'"),
    identity: Identity = Depends(get_current_identity),
    service: RegistrantService = Depends(get_service),
):
    """List eligible participants, optionally narrowed to one group tab."""
    try:
        selector = parse_group_selector(group)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return service.list_registrants(selector, order)


@router.get("/stats", response_model=reg_schema.DashboardStats)
def dashboard_stats(
    identity: Identity = Depends(get_current_identity),
    service: RegistrantService = Depends(get_service),
):
    """Summary counts for the dashboard overview."""
    return service.dashboard_stats()


@router.get("/import/template")
def download_import_template(
    identity: Identity = Depends(require_admin),
    service: RegistrantService = Depends(get_service),
):
    """Download the empty import template with the Location dropdown."""
    return xlsx_response(service.import_template(), TEMPLATE_FILENAME)


@router.post("/import", response_model=reg_schema.ImportResult)
def import_participants(
    file: UploadFile = File(..., description="Filled-in import template (.xlsx)"),
    identity: Identity = Depends(require_admin),
    service: RegistrantService = Depends(get_service),
):
    """
    Import participants from a filled-in template.

    Valid rows are stored; rejected rows are listed in `errors`. Run
    group assignment after all files are imported.
    """
    _validate_spreadsheet_upload(file)
    with single_flight((identity.profile_id, "import"), "An import is already being processed."):
        try:
            data = file.file.read()
        finally:
            file.file.close()
        return service.import_registrants(data, file.filename)


@router.get("/export")
def export_participants(
    identity: Identity = Depends(require_admin),
    service: RegistrantService = Depends(get_service),
):
    """Download all eligible participants split into group sheets."""
    with single_flight((identity.profile_id, "export"), "An export is already being generated."):
        stream = service.export_registrants()
    return xlsx_response(stream, export_filename())


@router.post("/assign-groups", response_model=reg_schema.GroupAssignmentResult)
def assign_groups(
    identity: Identity = Depends(require_admin),
    service: RegistrantService = Depends(get_service),
):
    """Assign groups to every eligible participant that has none yet."""
    with single_flight((identity.profile_id, "assign-groups"), "Group assignment is already running."):
        return service.assign_groups()
