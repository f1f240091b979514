"""
Courtage CRM - Routes Campagnes (Brevo)

Création: segment fixe -> nouvelle liste Brevo -> ajout des contacts ->
campagne "classic" sur cette liste.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from config import now_iso
from models.campaign import CampaignCreate
from routes.deps import get_store, get_brevo
from services.brevo import BrevoClient
from services.errors import NotFound, ValidationError
from services.row_store import RowStore
from services.segments import get_segments, flatten_segment

logger = logging.getLogger("routes.campaigns")

router = APIRouter(prefix="/campaigns", tags=["Campagnes"])


@router.get("/test-connection")
async def test_connection(brevo: BrevoClient = Depends(get_brevo)):
    return await brevo.test_connection()


@router.post("", status_code=201)
async def create_campaign(
    data: CampaignCreate,
    store: RowStore = Depends(get_store),
    brevo: BrevoClient = Depends(get_brevo)
):
    missing = data.missing_fields()
    if missing:
        raise ValidationError("Tous les champs sont requis.", details={"missingFields": missing})

    segments = await get_segments(store)
    contacts = flatten_segment(segments.get(data.segmentId) or [])
    if not contacts:
        raise NotFound("Segment non trouvé ou vide.", details={"segmentId": data.segmentId})

    list_name = f"Segment: {data.segmentId} - {now_iso()}"
    contact_list = await brevo.create_list(list_name)
    added = await brevo.add_to_list(contact_list["id"], contacts)

    if added["added"] == 0:
        raise ValidationError(
            "Aucun contact valide à ajouter à la campagne.",
            details={"segmentId": data.segmentId, "listId": contact_list["id"]}
        )

    campaign = await brevo.create_campaign({
        "name": data.name,
        "subject": data.subject,
        "htmlContent": data.htmlContent,
        "sender": data.sender.model_dump(),
        "listIds": [contact_list["id"]],
        "scheduledAt": data.scheduledAt,
    })
    logger.info(f"[CAMPAIGNS] \"{data.name}\" créée sur {added['added']} contacts ({data.segmentId})")

    return {
        "success": True,
        "message": "Campagne créée avec succès.",
        "campaign": campaign,
        "list": {**contact_list, "contactsAdded": added["added"], "contactsTotal": added["total"]},
    }


@router.get("")
async def list_campaigns(
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    status: Optional[str] = None,
    brevo: BrevoClient = Depends(get_brevo)
):
    return await brevo.list_campaigns(limit=limit, offset=offset, status=status)


@router.get("/{campaign_id}")
async def get_campaign(campaign_id: str, brevo: BrevoClient = Depends(get_brevo)):
    return await brevo.get_campaign(campaign_id)


@router.post("/{campaign_id}/send")
async def send_campaign(campaign_id: str, brevo: BrevoClient = Depends(get_brevo)):
    return await brevo.send_now(campaign_id)
