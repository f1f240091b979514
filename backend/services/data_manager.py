"""
Fusion Contacts / Projets / Contrats

Source de vérité unique des prospects: une fiche fusionnée par ligne
de la feuille Projets, jamais par contact ni par contrat.
- Contacts indexés par Identifiant (le dernier doublon l'emporte)
- Contrats agrégés par "Contact - Identifiant" (rétractés exclus des actifs)
- Les champs du projet écrasent ceux du contact en cas de collision
"""

import asyncio
import logging
from typing import Dict, List

from config import SHEET_CONTACTS, SHEET_PROJETS, SHEET_CONTRATS
from models.crm import Contact, Projet, Contrat
from services.row_store import RowStore, rows_to_dicts

logger = logging.getLogger("data_manager")


class ContratStats:
    """Accumulateur par contact"""

    __slots__ = ("count", "active_count", "total_prime")

    def __init__(self):
        self.count = 0
        self.active_count = 0
        self.total_prime = 0.0

    def add(self, contrat: Contrat):
        self.count += 1
        if contrat.is_active:
            self.active_count += 1
            self.total_prime += contrat.prime_nette_annuelle


def index_contacts(contacts: List[dict]) -> Dict[str, Contact]:
    index = {}
    for row in contacts:
        contact = Contact.from_row(row)
        if contact.identifiant:
            index[contact.identifiant] = contact
    return index


def aggregate_contrats(contrats: List[dict]) -> Dict[str, ContratStats]:
    stats = {}
    for row in contrats:
        contrat = Contrat.from_row(row)
        if not contrat.contact_identifiant:
            continue
        stats.setdefault(contrat.contact_identifiant, ContratStats()).add(contrat)
    return stats


def merge_prospects(contacts: List[dict], projets: List[dict], contrats: List[dict]) -> List[dict]:
    """
    Jointure gauche Projet -> Contact -> stats Contrats.

    Les trois listes sont des lignes déjà converties en dicts (en-tête -> valeur).
    Ne lève jamais sur des données malformées: montant illisible = 0,
    contact absent = champs vides.
    """
    contacts_map = index_contacts(contacts)
    contrats_map = aggregate_contrats(contrats)

    merged = []
    for projet_row in projets:
        projet = Projet.from_row(projet_row)
        contact = contacts_map.get(projet.identifiant_contact)
        stats = contrats_map.get(projet.identifiant_contact) or ContratStats()

        prospect = {}
        if contact:
            prospect.update(contact.to_row())
        prospect.update(projet.to_row())
        prospect.update({
            'Nom Complet': contact.nom_complet if contact else '',
            'Nombre de contrats': stats.count,
            'Nombre de contrats actifs': stats.active_count,
            'Portefeuille total': stats.total_prime,
        })
        merged.append(prospect)

    return merged


async def fetch_tables(store: RowStore, *names: str) -> List[List[dict]]:
    """Lit plusieurs feuilles en parallèle; la première erreur annule tout"""
    tables = await asyncio.gather(*(store.get_table(name) for name in names))
    return [rows_to_dicts(table) for table in tables]


async def get_merged_prospects(store: RowStore) -> List[dict]:
    contacts, projets, contrats = await fetch_tables(
        store, SHEET_CONTACTS, SHEET_PROJETS, SHEET_CONTRATS
    )
    prospects = merge_prospects(contacts, projets, contrats)
    logger.info(f"[MERGE] {len(prospects)} prospects fusionnés ({len(contacts)} contacts, {len(contrats)} contrats)")
    return prospects
