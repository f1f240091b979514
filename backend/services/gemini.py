"""
Génération de contenu via Google Gemini

- generate_content: prompt libre -> texte
- analyze_segment_query: requête en langage naturel -> filtres de segment
"""

import json
import logging
import re
from typing import Optional

import httpx

from config import GEMINI_API_URL
from services.errors import UpstreamError, ValidationError

logger = logging.getLogger("gemini")

SEGMENT_QUERY_PROMPT = """Analysez la requête suivante pour extraire des critères de filtrage de prospects/clients. Retournez un objet JSON avec les clés suivantes si elles sont mentionnées: "ageMin", "ageMax", "ville", "departement", "pays", "typeProduit", "statut", "scoreIaMin", "scoreIaMax", "estClient" (true/false). Si un critère n'est pas mentionné, ne l'incluez pas. Pour "estClient", si la requête mentionne "clients", mettez true; si elle mentionne "prospects" ou "non clients", mettez false.
Exemples:
- "clients de Paris entre 30 et 40 ans" -> {{"ville": "Paris", "ageMin": 30, "ageMax": 40, "estClient": true}}
- "prospects avec un score IA supérieur à 80" -> {{"scoreIaMin": 80, "estClient": false}}
- "clients de Lyon avec assurance auto" -> {{"ville": "Lyon", "typeProduit": "assurance auto", "estClient": true}}
- "prospects non joignables" -> {{"statut": "ne répond pas", "estClient": false}}
- "tous les clients" -> {{"estClient": true}}
- "tous les prospects" -> {{"estClient": false}}
- "prospects de Marseille" -> {{"ville": "Marseille", "estClient": false}}
- "clients avec contrat d'assurance vie" -> {{"typeProduit": "assurance vie", "estClient": true}}
- "prospects avec un score IA entre 60 et 75" -> {{"scoreIaMin": 60, "scoreIaMax": 75, "estClient": false}}
- "clients du département 75" -> {{"departement": "75", "estClient": true}}
- "prospects en France" -> {{"pays": "France", "estClient": false}}

Requête à analyser: "{query}\""""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


async def generate_content(
    prompt: str,
    api_key: Optional[str],
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> str:
    if not api_key:
        raise ValidationError(
            "Clé API Gemini non configurée. Veuillez l'ajouter via la page d'Administration."
        )

    payload = {"contents": [{"parts": [{"text": prompt}]}]}
    try:
        async with httpx.AsyncClient(timeout=60.0, transport=transport) as http_client:
            response = await http_client.post(
                GEMINI_API_URL,
                params={"key": api_key},
                json=payload,
                headers={"Content-Type": "application/json"}
            )
        response.raise_for_status()
        return response.json()["candidates"][0]["content"]["parts"][0]["text"]
    except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
        logger.error(f"[GEMINI] Erreur lors de l'appel à l'API Gemini: {str(e)}")
        raise UpstreamError(
            "Impossible de générer du contenu avec l'IA. Vérifiez votre clé API et les logs du serveur.",
            details=str(e)
        )


def extract_filters(text: str) -> dict:
    """Premier objet JSON {...} trouvé dans la réponse; UpstreamError sinon"""
    match = _JSON_OBJECT.search(text or "")
    try:
        if not match:
            raise ValueError("Aucun JSON valide trouvé dans la réponse de l'IA.")
        filters = json.loads(match.group(0))
        if not isinstance(filters, dict):
            raise ValueError("La réponse de l'IA n'est pas un objet JSON.")
    except ValueError:
        logger.warning(f"[GEMINI] Réponse IA non exploitable: {text}")
        raise UpstreamError("L'IA n'a pas retourné un format de filtre valide.", details={"rawResponse": text})
    return filters


async def analyze_segment_query(
    query: str,
    api_key: Optional[str],
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> dict:
    text = await generate_content(SEGMENT_QUERY_PROMPT.format(query=query), api_key, transport=transport)
    filters = extract_filters(text)
    logger.info(f"[GEMINI] Requête \"{query}\" -> {filters}")
    return filters
