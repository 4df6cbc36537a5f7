"""Registrant service layer - registration, roster queries and spreadsheet actions."""

import logging
from io import BytesIO
from typing import List, Optional

from fastapi import HTTPException, status

from app.common.config import Settings, get_settings
from app.registrants import schemas as reg_schema
from app.registrants.exporter import build_participants_export
from app.registrants.importer import process_registrant_import
from app.registrants.models import Registrant
from app.registrants.rules import GROUP_NUMBERS, MINIMUM_AGE
from app.registrants.store import RecordStore, StoreError
from app.registrants.template import build_import_template
from app.registrants.views import ALL, GroupSelector, filter_by_group

logger = logging.getLogger(__name__)

ELIGIBLE = {"age__gte": MINIMUM_AGE}

ORDERINGS = {
    "recent": ("-created_at",),
    "group": ("assigned_group", "full_name"),
}

ASSIGN_ALL_OPERATION = "assign_all_ungrouped_registrants"


class RegistrantService:
    """Operations behind the registrant endpoints; all data access goes through the store."""

    def __init__(self, store: RecordStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def register(self, payload: reg_schema.RegistrantCreate) -> reg_schema.RegistrationResponse:
        """Store one registrant from the form. The group is assigned later."""
        try:
            registrant = self.store.insert(payload.model_dump())
        except StoreError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Registration failed: {exc.message}"
            ) from exc

        logger.info("Registered %s (id=%s)", registrant.full_name, registrant.id)
        return reg_schema.RegistrationResponse(
            message=f"Registration successful! (ID: {registrant.id}). Group will be assigned later.",
            registrant=reg_schema.RegistrantRead.model_validate(registrant),
        )

    def list_eligible(self, order: str = "recent") -> List[Registrant]:
        if order not in ORDERINGS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid order: {order}. Use one of: {', '.join(ORDERINGS)}."
            )
        try:
            return self.store.select(ELIGIBLE, ORDERINGS[order])
        except StoreError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Failed to fetch registrants: {exc.message}"
            ) from exc

    def list_registrants(self, selector: GroupSelector = ALL, order: str = "recent") -> List[Registrant]:
        return filter_by_group(self.list_eligible(order), selector)

    def dashboard_stats(self) -> reg_schema.DashboardStats:
        """Counts for the overview page; one failed count fails the whole request."""
        try:
            counts = {"total": self.store.count(ELIGIBLE)}
            for group in GROUP_NUMBERS:
                counts[f"group{group}"] = self.store.count({"assigned_group": group})
            counts["unassigned"] = self.store.count({"assigned_group__isnull": True, **ELIGIBLE})
        except StoreError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Failed to fetch some statistics: {exc.message}"
            ) from exc
        return reg_schema.DashboardStats(**counts)

    def assign_groups(self) -> reg_schema.GroupAssignmentResult:
        """Ask the database to place every eligible, ungrouped registrant in a group."""
        try:
            processed = self.store.invoke(ASSIGN_ALL_OPERATION)
        except StoreError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Failed to trigger group assignment: {exc.message}"
            ) from exc

        processed = processed or 0
        logger.info("Group assignment processed %d registrants", processed)
        return reg_schema.GroupAssignmentResult(
            message=f"Group assignment process finished. Attempted to assign {processed} participants.",
            processed=processed,
        )

    def import_template(self) -> BytesIO:
        try:
            return build_import_template(self.settings.template_validation_rows)
        except Exception as exc:
            logger.exception("Error generating import template")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to download template."
            ) from exc

    def import_registrants(self, data: bytes, filename: str) -> reg_schema.ImportResult:
        return process_registrant_import(
            data,
            self.store,
            conflict_columns=self.settings.import_conflict_columns,
            filename=filename,
        )

    def export_registrants(self) -> BytesIO:
        registrants = self.list_eligible("recent")
        if not registrants:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No participant data available to export."
            )
        try:
            return build_participants_export(registrants, self.settings.event_title)
        except Exception as exc:
            logger.exception("Export error")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="An error occurred during export."
            ) from exc
