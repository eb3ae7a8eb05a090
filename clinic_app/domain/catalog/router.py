"""Catalog router - Deactivation endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from .service import CatalogService

router = APIRouter(tags=["Catalog"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


@router.delete("/practitioners/{practitioner_id}")
async def deactivate_practitioner(
    practitioner_id: int,
    service: CatalogService = Depends(get_catalog_service),
):
    result = service.deactivate_practitioner(practitioner_id)
    return {"ok": True, "message": "Practitioner deactivated", **result}


@router.delete("/appointment-types/{appointment_type_id}")
async def deactivate_appointment_type(
    appointment_type_id: int,
    service: CatalogService = Depends(get_catalog_service),
):
    result = service.deactivate_appointment_type(appointment_type_id)
    return {"ok": True, "message": "Appointment type deactivated", **result}
