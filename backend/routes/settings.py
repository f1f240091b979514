"""
Courtage CRM - Routes Settings (Admin)

Paramètres stockés dans la feuille "Settings":
- SMTP / IMAP, clé Gemini
- dépenses, coût par fiche
- taux de commission par compagnie
La feuille est créée et complétée avec les clés requises à chaque accès.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from config import SHEET_SETTINGS
from routes.deps import get_store, get_settings_cache
from services.row_store import RowStore
from services.settings import (
    SettingsCache,
    ensure_settings_sheet,
    rows_to_settings,
    save_settings,
)

router = APIRouter(prefix="/admin", tags=["Settings"])


@router.get("/settings")
async def get_settings(store: RowStore = Depends(get_store)):
    """Paramètres actuels (lecture directe, sans cache)"""
    await ensure_settings_sheet(store)
    return rows_to_settings(await store.get_table(SHEET_SETTINGS))


@router.post("/settings")
async def update_settings(
    data: Dict[str, Any] = Body(...),
    store: RowStore = Depends(get_store),
    cache: SettingsCache = Depends(get_settings_cache)
):
    """Réécrit toute la feuille avec les paires reçues"""
    await ensure_settings_sheet(store)
    await save_settings(store, data, cache)
    return {"message": "Paramètres sauvegardés avec succès !"}
