"""
Journal des interactions (feuille "Interactions", ajout seulement)

Ligne: [horodatage ISO, ID contact, type, canal, sujet, message, statut,
        nom du workflow, nom du segment]
"""

import logging
from typing import List, Optional

from config import SHEET_INTERACTIONS, now_iso
from services.errors import ValidationError
from services.row_store import RowStore, rows_to_dicts

logger = logging.getLogger("interactions")

COLUMN_CONTACT_ID = "ID Contact"

TYPE_EMAIL = "Email"
CANAL_MANUEL = "Manuel"
CANAL_AUTOMATIQUE = "Automatique"
CANAL_RECEPTION = "Réception Automatique"
STATUT_ENVOYE = "Envoyé"
STATUT_RECU = "Reçu"


def build_interaction_row(
    contact_id: str,
    sujet: str,
    message: str,
    type: str = TYPE_EMAIL,
    canal: str = CANAL_MANUEL,
    statut: str = STATUT_ENVOYE,
    workflow: Optional[str] = None,
    segment: Optional[str] = None
) -> List[str]:
    row = [now_iso(), contact_id, type, canal, sujet, message, statut]
    if workflow is not None or segment is not None:
        row += [workflow or "", segment or ""]
    return row


async def log_interaction(store: RowStore, contact_id: str, sujet: str, message: str, **kwargs) -> List[str]:
    row = build_interaction_row(contact_id, sujet, message, **kwargs)
    await store.append_rows(SHEET_INTERACTIONS, [row])
    logger.info(f"[INTERACTION] {row[3]} / {row[6]} pour le contact {contact_id}: {sujet}")
    return row


async def get_prospect_interactions(store: RowStore, prospect_id: str) -> List[dict]:
    table = await store.get_table(SHEET_INTERACTIONS)
    if not table or COLUMN_CONTACT_ID not in table[0]:
        raise ValidationError(f"La colonne '{COLUMN_CONTACT_ID}' est introuvable dans la feuille {SHEET_INTERACTIONS}.")
    return [row for row in rows_to_dicts(table) if row[COLUMN_CONTACT_ID] == prospect_id]
