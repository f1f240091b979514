"""
Courtage CRM - Routes Segments IA

- GET  /ia/segments              (filtres en query string, sinon cohortes fixes)
- GET  /ia/prospects-merged
- GET  /ia/non-repondants
- POST /ia/segments/export-to-brevo
- POST /ia/launch-workflow
"""

import logging

import pydantic
from fastapi import APIRouter, Depends, Request

from models.campaign import ExportSegmentRequest
from models.segment import SegmentFilters
from models.workflow import LaunchWorkflowRequest
from routes.deps import get_store, get_brevo, get_mailer
from services.brevo import BrevoClient
from services.data_manager import get_merged_prospects
from services.errors import ValidationError
from services.row_store import RowStore
from services.segments import get_segments, get_non_repondants
from services.workflows import launch_workflow

logger = logging.getLogger("routes.segments")

router = APIRouter(prefix="/ia", tags=["Segments IA"])


@router.get("/segments")
async def list_segments(request: Request, store: RowStore = Depends(get_store)):
    """Segment unique "Résultat de la recherche IA" si un filtre est fourni"""
    try:
        filters = SegmentFilters.model_validate(dict(request.query_params))
    except pydantic.ValidationError as e:
        raise ValidationError("Filtres de segmentation invalides.", details=e.errors(include_url=False))
    return await get_segments(store, filters)


@router.get("/prospects-merged")
async def list_merged_prospects(store: RowStore = Depends(get_store)):
    return await get_merged_prospects(store)


@router.get("/non-repondants")
async def list_non_repondants(store: RowStore = Depends(get_store)):
    """Prospects au statut 'ne répond pas'"""
    return await get_non_repondants(store)


@router.post("/segments/export-to-brevo")
async def export_segment(data: ExportSegmentRequest, brevo: BrevoClient = Depends(get_brevo)):
    if not data.segmentName or not isinstance(data.contacts, list):
        raise ValidationError("Nom du segment et liste de contacts sont requis.")

    contact_list = await brevo.create_list(data.segmentName)
    result = await brevo.add_to_list(contact_list["id"], data.contacts)
    logger.info(f"[SEGMENTS] \"{data.segmentName}\" exporté: {result['added']}/{result['total']}")

    return {
        "message": f"Segment \"{data.segmentName}\" exporté avec succès vers Brevo.",
        "listId": contact_list["id"],
        **result,
    }


@router.post("/launch-workflow")
async def launch(
    data: LaunchWorkflowRequest,
    store: RowStore = Depends(get_store),
    send=Depends(get_mailer)
):
    if not data.segmentName or not data.workflowId:
        raise ValidationError("Les champs segmentName et workflowId sont requis pour lancer un workflow.")
    return await launch_workflow(store, data.segmentName, data.workflowId, send)
