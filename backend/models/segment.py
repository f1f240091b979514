"""
Filtres de segmentation (recherche manuelle ou extraite par l'IA)
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

SEGMENT_RECHERCHE_IA = "Résultat de la recherche IA"

SEGMENT_NON_JOIGNABLES = "Non joignables"
SEGMENT_DEVIS_SANS_REPONSE = "Devis sans réponse (plus de 5 jours)"
SEGMENT_PROSPECTS_FROIDS = "Prospects froids (plus de 15 jours)"
SEGMENT_NOUVEAUX = "Nouveaux prospects (moins de 24h)"
SEGMENT_MONO_PRODUIT = "Clients avec 1 seul produit"
SEGMENT_PAR_REGION = "Par région"

FIXED_SEGMENTS = [
    SEGMENT_NON_JOIGNABLES,
    SEGMENT_DEVIS_SANS_REPONSE,
    SEGMENT_PROSPECTS_FROIDS,
    SEGMENT_NOUVEAUX,
    SEGMENT_MONO_PRODUIT,
    SEGMENT_PAR_REGION,
]

_TRUE = {"true", "1", "oui", "yes"}
_FALSE = {"false", "0", "non", "no"}


class SegmentFilters(BaseModel):
    """Prédicats combinés en ET; un champ None n'est pas appliqué"""
    model_config = ConfigDict(extra="ignore")

    ageMin: Optional[float] = None
    ageMax: Optional[float] = None
    ville: Optional[str] = None
    departement: Optional[str] = None
    pays: Optional[str] = None
    typeProduit: Optional[str] = None
    statut: Optional[str] = None
    scoreIaMin: Optional[float] = None
    scoreIaMax: Optional[float] = None
    estClient: Optional[bool] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("estClient", mode="before")
    @classmethod
    def parse_est_client(cls, value):
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
        return value

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)
