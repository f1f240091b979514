"""
Erreurs métier du CRM

Chaque erreur porte son code HTTP; le handler de server.py les convertit
en réponse JSON {"error": ..., "details": ...}.
Les erreurs de parsing (montants, dates) ne sont jamais levées: elles
dégradent la valeur en place (0, hors période, chaîne vide).
"""

from typing import Any, Optional


class CrmError(Exception):
    """Base des erreurs du CRM"""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFound(CrmError):
    """Feuille, segment, workflow ou campagne introuvable"""
    status_code = 404


class ValidationError(CrmError):
    """Champ requis manquant ou données refusées"""
    status_code = 400


class UpstreamAuthError(CrmError):
    """Le fournisseur externe refuse nos identifiants"""
    status_code = 401


class UpstreamError(CrmError):
    """Toute autre erreur d'un fournisseur externe"""
    status_code = 500
