"""
Client Brevo (campagnes email, listes de contacts)

API REST v3, authentification par en-tête api-key.
Codes d'erreur Brevo -> erreurs CRM:
  401 -> UpstreamAuthError, 400 -> ValidationError, 404 -> NotFound,
  autre / réseau -> UpstreamError
"""

import logging
from typing import Dict, List, Optional

import httpx

from config import BREVO_API_URL, BREVO_API_KEY
from services.errors import NotFound, UpstreamAuthError, UpstreamError, ValidationError

logger = logging.getLogger("brevo")

CHUNK_SIZE = 100  # Brevo accepte 150 contacts par appel, on garde de la marge
DEFAULT_FOLDER_ID = 1

_MAPPED_ATTRIBUTES = {
    "Nom": "NOM",
    "Prenom": "PRENOM",
    "Telephone": "TELEPHONE",
    "Societe": "SOCIETE",
    "Adresse": "ADRESSE",
    "CodePostal": "CODE_POSTAL",
    "Ville": "VILLE",
}
_SKIPPED_KEYS = {"Email", "email", "id", "_id"}

AUTH_MESSAGE = "Authentification échouée. Vérifiez votre clé API Brevo."


def _error_message(response: httpx.Response) -> str:
    try:
        return (response.json() or {}).get("message") or response.text
    except ValueError:
        return response.text


def to_brevo_contact(contact) -> Optional[Dict]:
    """Prospect (dict) ou email (str) -> {email, attributes}; None si email invalide"""
    if isinstance(contact, str):
        return {"email": contact, "attributes": {}} if "@" in contact else None
    if not isinstance(contact, dict):
        return None

    email = contact.get("Email") or contact.get("email")
    if not isinstance(email, str) or "@" not in email:
        return None

    attributes = {}
    for key, value in contact.items():
        if key in _SKIPPED_KEYS or value in (None, ""):
            continue
        attributes[_MAPPED_ATTRIBUTES.get(key, key.upper())] = value
    return {"email": email, "attributes": attributes}


def validate_campaign_data(details: dict) -> List[str]:
    errors = []
    if not details.get("name"):
        errors.append("Le nom de la campagne est requis")
    if not details.get("subject"):
        errors.append("Le sujet de l'email est requis")
    if not details.get("htmlContent"):
        errors.append("Le contenu HTML est requis")

    sender = details.get("sender") or {}
    if not sender.get("name") or not sender.get("email"):
        errors.append("Les informations de l'expéditeur (nom et email) sont requises")
    elif "@" not in sender["email"]:
        errors.append("L'email de l'expéditeur est invalide")

    list_ids = details.get("listIds")
    if not isinstance(list_ids, list) or not list_ids:
        errors.append("Au moins une liste de destinataires est requise")
    return errors


class BrevoClient:
    """Client asynchrone; `transport` permet d'injecter un faux serveur"""

    def __init__(
        self,
        api_key: str = BREVO_API_KEY,
        base_url: str = BREVO_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        logger.info(f"[BREVO API] {method} {endpoint}")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self.transport
            ) as http_client:
                return await http_client.request(method, endpoint, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"[BREVO API] Timeout {method} {endpoint}")
            raise UpstreamError("Timeout - l'API Brevo ne répond pas")
        except httpx.HTTPError as e:
            logger.error(f"[BREVO API] Erreur réseau {method} {endpoint}: {str(e)}")
            raise UpstreamError("Erreur réseau lors de l'appel à l'API Brevo", details=str(e))

    def _raise_for_status(self, response: httpx.Response, failure: str, not_found: Optional[str] = None):
        if response.is_success:
            return
        message = _error_message(response)
        logger.error(f"[BREVO API] Erreur {response.status_code}: {message}")

        if response.status_code == 401:
            raise UpstreamAuthError(AUTH_MESSAGE)
        if response.status_code == 400:
            raise ValidationError(f"Validation échouée: {message or 'Données invalides'}")
        if response.status_code == 404 and not_found:
            raise NotFound(not_found)
        raise UpstreamError(failure, details=message)

    # ==================== CAMPAGNES ====================

    async def list_campaigns(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        status: Optional[str] = None,
        type: Optional[str] = None
    ) -> List[dict]:
        params = {k: v for k, v in {"limit": limit, "offset": offset, "status": status, "type": type}.items() if v}
        response = await self._request("GET", "/emailCampaigns", params=params)
        self._raise_for_status(response, "Impossible de récupérer les campagnes email depuis Brevo.")
        campaigns = response.json().get("campaigns") or []
        logger.info(f"[BREVO API] {len(campaigns)} campagnes email récupérées")
        return campaigns

    async def get_campaign(self, campaign_id) -> dict:
        response = await self._request("GET", f"/emailCampaigns/{campaign_id}")
        self._raise_for_status(
            response,
            f"Impossible de récupérer les détails de la campagne {campaign_id}.",
            not_found=f"Campagne d'ID {campaign_id} non trouvée."
        )
        return response.json()

    async def create_campaign(self, details: dict) -> dict:
        errors = validate_campaign_data(details)
        if errors:
            raise ValidationError(f"Validation échouée: {', '.join(errors)}")

        payload = {
            "name": details["name"],
            "subject": details["subject"],
            "sender": {"name": details["sender"]["name"], "email": details["sender"]["email"]},
            "type": "classic",
            "htmlContent": details["htmlContent"],
            "recipients": {"listIds": details["listIds"]},
        }
        if details.get("scheduledAt"):
            payload["scheduledAt"] = details["scheduledAt"]

        response = await self._request("POST", "/emailCampaigns", json=payload)
        self._raise_for_status(
            response,
            "Échec de la création de la campagne email.",
            not_found="Une ressource référencée n'a pas été trouvée (liste de contacts ou modèle)."
        )
        campaign = response.json()
        logger.info(f"[BREVO API] Campagne email créée: {campaign.get('id')}")
        return campaign

    async def send_now(self, campaign_id) -> dict:
        response = await self._request("POST", f"/emailCampaigns/{campaign_id}/sendNow")
        if response.status_code == 400:
            raise ValidationError(
                f"Impossible d'envoyer la campagne: "
                f"{_error_message(response) or 'La campagne ne peut pas être envoyée dans son état actuel'}"
            )
        self._raise_for_status(
            response,
            f"Échec de l'envoi de la campagne {campaign_id}.",
            not_found=f"Campagne d'ID {campaign_id} non trouvée."
        )
        logger.info(f"[BREVO API] Campagne {campaign_id} envoyée")
        return {"success": True, "message": "Campagne envoyée avec succès"}

    # ==================== LISTES ====================

    async def create_list(self, name: str, folder_id: int = DEFAULT_FOLDER_ID) -> dict:
        response = await self._request("POST", "/contacts/lists", json={"name": name, "folderId": folder_id})
        self._raise_for_status(response, "Impossible de créer la liste de contacts sur Brevo.")
        contact_list = response.json()
        logger.info(f"[BREVO API] Liste de contacts \"{name}\" créée: {contact_list.get('id')}")
        return contact_list

    async def add_to_list(self, list_id, contacts: list) -> dict:
        """
        Ajoute des contacts à une liste par lots de 100, séquentiellement.
        Un lot en échec est journalisé et le lot suivant est quand même traité.
        Liste inexistante -> NotFound (arrêt immédiat).
        """
        brevo_contacts = [c for c in (to_brevo_contact(c) for c in contacts or []) if c]
        if not brevo_contacts:
            logger.info("[BREVO API] Aucun contact valide à ajouter")
            return {"added": 0, "total": 0}

        total_added = 0
        for start in range(0, len(brevo_contacts), CHUNK_SIZE):
            chunk = brevo_contacts[start:start + CHUNK_SIZE]

            # 1. Créer / mettre à jour les contacts (échec non bloquant)
            try:
                created = await self._request("POST", "/contacts/batch", json={"contacts": chunk})
                if not created.is_success:
                    logger.warning(f"[BREVO API] Création contacts: {created.status_code} {_error_message(created)}")
            except UpstreamError as e:
                logger.warning(f"[BREVO API] Création contacts impossible: {e.message}")

            # 2. Ajouter les emails à la liste
            emails = [c["email"] for c in chunk]
            try:
                response = await self._request(
                    "POST", f"/contacts/lists/{list_id}/contacts/add", json={"emails": emails}
                )
            except UpstreamError as e:
                logger.error(f"[BREVO API] Lot {start // CHUNK_SIZE + 1} en échec: {e.message}")
                continue

            if response.is_success:
                total_added += len(emails)
                continue

            if response.status_code == 404:
                raise NotFound(f"Liste d'ID {list_id} non trouvée sur Brevo.")
            if response.status_code == 400 and "Contact already in list" in _error_message(response):
                logger.info(f"[BREVO API] Certains contacts étaient déjà dans la liste {list_id}")
                total_added += len(emails)
                continue

            logger.error(
                f"[BREVO API] Lot {start // CHUNK_SIZE + 1} en échec ({response.status_code}), "
                f"passage au lot suivant"
            )

        return {"added": total_added, "total": len(brevo_contacts)}

    # ==================== COMPTE ====================

    async def test_connection(self) -> dict:
        try:
            response = await self._request("GET", "/account")
        except UpstreamError as e:
            return {"success": False, "error": e.message,
                    "message": "Échec de la connexion à l'API Brevo. Vérifiez votre clé API."}

        if response.is_success:
            return {"success": True, "data": response.json(),
                    "message": "Connexion à l'API Brevo établie avec succès."}
        return {"success": False, "error": _error_message(response),
                "message": "Échec de la connexion à l'API Brevo. Vérifiez votre clé API."}
