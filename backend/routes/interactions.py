"""
Courtage CRM - Routes Interactions et envoi d'email manuel
"""

from fastapi import APIRouter, Depends

from models.interaction import InteractionCreate, EmailSendRequest
from routes.deps import get_store, get_mailer
from services.errors import ValidationError
from services.interactions import (
    log_interaction,
    get_prospect_interactions,
    TYPE_EMAIL,
    CANAL_MANUEL,
    STATUT_ENVOYE,
)
from services.row_store import RowStore

router = APIRouter(prefix="/interactions", tags=["Interactions"])
email_router = APIRouter(prefix="/email", tags=["Email"])


@router.post("", status_code=201)
async def add_interaction(data: InteractionCreate, store: RowStore = Depends(get_store)):
    if not data.prospectId or not data.sujet or not data.message:
        raise ValidationError("Les champs prospectId, sujet et message sont requis.")

    row = await log_interaction(
        store, data.prospectId, data.sujet, data.message,
        type=data.type or TYPE_EMAIL,
        canal=data.canal or CANAL_MANUEL,
        statut=data.statut or STATUT_ENVOYE
    )
    return {"message": "Interaction enregistrée avec succès.", "data": row}


@router.get("/prospect/{prospect_id}")
async def prospect_history(prospect_id: str, store: RowStore = Depends(get_store)):
    data = await get_prospect_interactions(store, prospect_id)
    return {"message": "Historique récupéré.", "data": data}


@email_router.post("/send")
async def send(data: EmailSendRequest, send_email=Depends(get_mailer)):
    if not data.to or not data.subject or not data.html:
        raise ValidationError("Les champs to, subject, et html sont requis.")
    await send_email(data.to, data.subject, data.html)
    return {"message": "Email envoyé avec succès."}
