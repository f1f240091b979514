"""
Segmentation des prospects fusionnés

Deux modes:
- filtres fournis (recherche manuelle ou IA) -> un seul segment
  "Résultat de la recherche IA" (tous les prédicats en ET)
- aucun filtre -> batterie fixe de cohortes calculées en un seul passage

Les cohortes ne sont pas exclusives: un prospect peut apparaître dans
plusieurs segments à la fois.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

from config import parse_date, parse_int
from models.segment import (
    SegmentFilters,
    SEGMENT_RECHERCHE_IA,
    SEGMENT_NON_JOIGNABLES,
    SEGMENT_DEVIS_SANS_REPONSE,
    SEGMENT_PROSPECTS_FROIDS,
    SEGMENT_NOUVEAUX,
    SEGMENT_MONO_PRODUIT,
    SEGMENT_PAR_REGION,
)
from services.data_manager import get_merged_prospects
from services.row_store import RowStore

logger = logging.getLogger("segments")

DEVIS_SANS_REPONSE_DELAY = timedelta(days=5)
PROSPECT_FROID_DELAY = timedelta(days=15)
NOUVEAU_PROSPECT_DELAY = timedelta(hours=24)


def _lower(prospect: dict, column: str) -> str:
    return str(prospect.get(column) or '').lower()


def _in_range(value, low, high) -> bool:
    if low is None and high is None:
        return True
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def is_client(prospect: dict) -> bool:
    """Client = au moins un contrat (rétractés compris)"""
    return (prospect.get('Nombre de contrats') or 0) > 0


def matches_filters(prospect: dict, filters: SegmentFilters) -> bool:
    age = parse_int(prospect.get('Âge'))
    score_ia = parse_int(prospect.get('Score IA'))

    if not _in_range(age, filters.ageMin, filters.ageMax):
        return False
    if not _in_range(score_ia, filters.scoreIaMin, filters.scoreIaMax):
        return False

    contains = [
        (filters.ville, 'Ville'),
        (filters.departement, 'Département'),
        (filters.pays, 'Pays'),
        (filters.typeProduit, 'Type de produit'),
        (filters.statut, 'Statut'),
    ]
    for needle, column in contains:
        if needle is not None and needle.lower() not in _lower(prospect, column):
            return False

    if filters.estClient is not None and filters.estClient != is_client(prospect):
        return False

    return True


def filter_prospects(prospects: List[dict], filters: SegmentFilters) -> List[dict]:
    return [p for p in prospects if matches_filters(p, filters)]


def compute_fixed_segments(prospects: List[dict], now: datetime) -> dict:
    segments = {
        SEGMENT_NON_JOIGNABLES: [],
        SEGMENT_DEVIS_SANS_REPONSE: [],
        SEGMENT_PROSPECTS_FROIDS: [],
        SEGMENT_NOUVEAUX: [],
        SEGMENT_MONO_PRODUIT: [],
        SEGMENT_PAR_REGION: {},
    }

    for prospect in prospects:
        statut = _lower(prospect, 'Statut')
        date_creation = parse_date(prospect.get('Date de création'))
        age = now - date_creation if date_creation else None
        ville = prospect.get('Ville')

        if statut == 'ne répond pas':
            segments[SEGMENT_NON_JOIGNABLES].append(prospect)

        if age is not None:
            if 'devis envoyé' in statut and age > DEVIS_SANS_REPONSE_DELAY:
                segments[SEGMENT_DEVIS_SANS_REPONSE].append(prospect)
            if age > PROSPECT_FROID_DELAY and 'contrat signé' not in statut:
                segments[SEGMENT_PROSPECTS_FROIDS].append(prospect)
            if age < NOUVEAU_PROSPECT_DELAY:
                segments[SEGMENT_NOUVEAUX].append(prospect)

        if prospect.get('Nombre de contrats') == 1 and 'contrat signé' in statut:
            segments[SEGMENT_MONO_PRODUIT].append(prospect)

        if ville:
            segments[SEGMENT_PAR_REGION].setdefault(ville, []).append(prospect)

    return segments


def detect_segments(
    prospects: List[dict],
    filters: Optional[Union[SegmentFilters, dict]] = None,
    now: Optional[datetime] = None
) -> Dict[str, Union[list, dict]]:
    if isinstance(filters, dict):
        filters = SegmentFilters.model_validate(filters)

    if filters is not None and not filters.is_empty():
        return {SEGMENT_RECHERCHE_IA: filter_prospects(prospects, filters)}

    return compute_fixed_segments(prospects, now or datetime.now(timezone.utc))


def detect_non_repondants(prospects: List[dict]) -> List[dict]:
    """Prospects au statut exact 'ne répond pas'"""
    return [p for p in prospects if _lower(p, 'Statut') == 'ne répond pas']


def flatten_segment(segment: Union[list, dict]) -> List[dict]:
    """Une cohorte "Par région" (ville -> liste) devient une liste unique"""
    if isinstance(segment, dict):
        flat = []
        for members in segment.values():
            flat.extend(members)
        return flat
    return list(segment)


async def get_segments(store: RowStore, filters: Optional[SegmentFilters] = None) -> dict:
    prospects = await get_merged_prospects(store)
    segments = detect_segments(prospects, filters)
    logger.info(f"[SEGMENTS] {len(segments)} segment(s) calculé(s) sur {len(prospects)} prospects")
    return segments


async def get_non_repondants(store: RowStore) -> List[dict]:
    prospects = detect_non_repondants(await get_merged_prospects(store))
    logger.info(f"[SEGMENTS] {len(prospects)} prospect(s) non répondant(s)")
    return prospects
