"""
Courtage CRM - Routes IA (Gemini)
"""

from fastapi import APIRouter, Depends

from models.interaction import PromptRequest, QueryRequest
from routes.deps import get_settings_cache
from services.errors import ValidationError
from services.gemini import generate_content, analyze_segment_query
from services.settings import SettingsCache

router = APIRouter(prefix="/ia", tags=["IA"])


@router.post("/generate-email-content")
async def generate_email_content(data: PromptRequest, cache: SettingsCache = Depends(get_settings_cache)):
    if not data.prompt:
        raise ValidationError("Le prompt est requis pour la génération de contenu.")
    settings = await cache.get_or_refresh()
    return {"content": await generate_content(data.prompt, settings.get("geminiApiKey"))}


@router.post("/analyze-segment-query")
async def analyze_query(data: QueryRequest, cache: SettingsCache = Depends(get_settings_cache)):
    if not data.query:
        raise ValidationError("La requête est requise pour l'analyse de segment.")
    settings = await cache.get_or_refresh()
    return {"filters": await analyze_segment_query(data.query, settings.get("geminiApiKey"))}
