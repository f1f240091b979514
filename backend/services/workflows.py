"""
Workflows et scénarios emailing

- CRUD sur les feuilles "Workflows" et "ScenariosEmailing" (colonne ID)
- launch_workflow: envoie le premier email d'un workflow à tous les
  prospects d'un segment, séquentiellement, et journalise chaque envoi.
  Un échec sur un contact n'interrompt jamais le lancement.
"""

import json
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from config import SHEET_WORKFLOWS, SHEET_SCENARIOS, parse_int
from services.errors import NotFound, ValidationError
from services.interactions import log_interaction, CANAL_AUTOMATIQUE, STATUT_ENVOYE
from services.row_store import RowStore, find_row_index, rows_to_dicts
from services.segments import get_segments, flatten_segment

logger = logging.getLogger("workflows")

COLUMN_ID = "ID"

# Colonnes dans l'ordre de la feuille
WORKFLOW_COLUMNS = [
    "ID", "Nom", "Déclencheur", "Étapes", "Statut", "Dernière exécution",
    "Segment cible", "Sujet Email", "Corps Email",
]
SCENARIO_COLUMNS = ["ID", "Nom", "Description", "Contenu"]

PRENOM_PLACEHOLDER = "[Prénom]"
PRENOM_DEFAULT = "cher client"

ACTION_SUCCESS = "Success"
ACTION_FAILED = "Failed"

SendEmail = Callable[[str, str, str], Awaitable[None]]


# ==================== CRUD GÉNÉRIQUE ====================

def next_id(table: List[List[str]]) -> int:
    """Plus grand ID numérique + 1 (1 si aucun)"""
    if not table or COLUMN_ID not in table[0]:
        return 1
    col = table[0].index(COLUMN_ID)
    ids = [parse_int(row[col]) for row in table[1:] if col < len(row)]
    ids = [i for i in ids if i is not None]
    return max(ids) + 1 if ids else 1


async def create_sheet_row(store: RowStore, sheet: str, values: List) -> int:
    """Ajoute une ligne [ID, *values] et retourne l'ID attribué"""
    table = await store.get_table(sheet)
    new_id = next_id(table)
    await store.append_rows(sheet, [[new_id] + values])
    logger.info(f"[{sheet.upper()}] Ligne {new_id} créée")
    return new_id


async def update_sheet_row(store: RowStore, sheet: str, row_id, updates: Dict[str, Optional[str]]) -> None:
    """
    Met à jour les colonnes nommées dans `updates`; une valeur vide ou None
    conserve la valeur existante. Les autres colonnes restent inchangées.
    """
    table = await store.get_table(sheet)
    index = find_row_index(table, COLUMN_ID, row_id)
    if index == -1:
        raise NotFound(f"Ligne d'ID {row_id} non trouvée dans la feuille {sheet}.")

    headers = table[0]
    existing = table[index - 1]
    existing = existing + [''] * (len(headers) - len(existing))
    row = [updates.get(h) or existing[i] for i, h in enumerate(headers)]

    await store.update_row(sheet, index, row)
    logger.info(f"[{sheet.upper()}] Ligne {row_id} mise à jour")


async def delete_sheet_row(store: RowStore, sheet: str, row_id) -> None:
    table = await store.get_table(sheet)
    index = find_row_index(table, COLUMN_ID, row_id)
    if index == -1:
        raise NotFound(f"Ligne d'ID {row_id} non trouvée dans la feuille {sheet}.")
    await store.delete_row(sheet, index)
    logger.info(f"[{sheet.upper()}] Ligne {row_id} supprimée")


# ==================== WORKFLOWS ====================

def dump_etapes(etapes) -> Optional[str]:
    if etapes is None:
        return None
    return json.dumps(etapes, ensure_ascii=False)


def parse_etapes(raw) -> list:
    """JSON des étapes; illisible ou autre chose qu'une liste -> []"""
    try:
        etapes = json.loads(raw or '[]')
    except ValueError:
        logger.warning(f"[WORKFLOWS] Étapes illisibles: {raw}")
        return []
    return etapes if isinstance(etapes, list) else []


async def create_workflow(store: RowStore, workflow) -> int:
    return await create_sheet_row(store, SHEET_WORKFLOWS, [
        workflow.Nom,
        workflow.Déclencheur,
        dump_etapes(workflow.Étapes),
        workflow.Statut,
        '',
        workflow.Segment_cible or '',
        workflow.Sujet_Email,
        workflow.Corps_Email,
    ])


async def update_workflow(store: RowStore, workflow_id, workflow) -> None:
    await update_sheet_row(store, SHEET_WORKFLOWS, workflow_id, {
        "Nom": workflow.Nom,
        "Déclencheur": workflow.Déclencheur,
        "Étapes": dump_etapes(workflow.Étapes),
        "Statut": workflow.Statut,
        "Segment cible": workflow.Segment_cible,
        "Sujet Email": workflow.Sujet_Email,
        "Corps Email": workflow.Corps_Email,
    })


async def get_workflow(store: RowStore, workflow_id) -> dict:
    for workflow in rows_to_dicts(await store.get_table(SHEET_WORKFLOWS)):
        if str(workflow.get(COLUMN_ID)) == str(workflow_id):
            return workflow
    raise NotFound(f"Workflow avec ID \"{workflow_id}\" non trouvé dans la feuille {SHEET_WORKFLOWS}.")


# ==================== SCÉNARIOS ====================

async def create_scenario(store: RowStore, scenario) -> int:
    return await create_sheet_row(store, SHEET_SCENARIOS, [
        scenario.Nom,
        scenario.Description or '',
        scenario.Contenu,
    ])


async def update_scenario(store: RowStore, scenario_id, scenario) -> None:
    await update_sheet_row(store, SHEET_SCENARIOS, scenario_id, {
        "Nom": scenario.Nom,
        "Description": scenario.Description,
        "Contenu": scenario.Contenu,
    })


# ==================== LANCEMENT ====================

def personalize(template: str, prospect: dict) -> str:
    return template.replace(PRENOM_PLACEHOLDER, prospect.get('Prénom') or PRENOM_DEFAULT)


def find_email_step(etapes: list) -> Optional[dict]:
    for step in etapes:
        if isinstance(step, dict) and step.get("type") == "email":
            return step
    return None


async def launch_workflow(store: RowStore, segment_name: str, workflow_id, send_email: SendEmail) -> dict:
    """
    1. prospects du segment (cohortes fixes, "Par région" aplati)
    2. workflow par ID, sujet / corps / étapes obligatoires
    3. un email personnalisé par prospect + ligne Interactions
    """
    segments = await get_segments(store)
    if segment_name not in segments:
        raise NotFound(f"Segment \"{segment_name}\" introuvable.")

    prospects = flatten_segment(segments[segment_name])
    if not prospects:
        return {"message": f"Aucun contact trouvé pour le segment \"{segment_name}\"."}

    workflow = await get_workflow(store, workflow_id)
    workflow_name = workflow.get("Nom", "")
    sujet_template = workflow.get("Sujet Email")
    corps_template = workflow.get("Corps Email")
    etapes = parse_etapes(workflow.get("Étapes"))

    if not sujet_template or not corps_template or not etapes:
        raise ValidationError(
            f"Le workflow \"{workflow_name}\" doit avoir un Sujet Email, un Corps Email et des Étapes définies."
        )

    email_step = find_email_step(etapes)
    results = {"sent": 0, "failed": 0}
    actions = []

    for prospect in prospects:
        contact_id = prospect.get("Identifiant", "")
        action = {"contactId": contact_id, "contactName": prospect.get("Nom Complet", "")}

        if not prospect.get("Email") or not email_step:
            results["failed"] += 1
            actions.append({
                **action,
                "status": ACTION_FAILED,
                "action": "Non éligible/Email manquant",
                "error": "Email manquant ou aucune étape email définie.",
            })
            continue

        sujet = personalize(sujet_template, prospect)
        corps = personalize(corps_template, prospect)
        try:
            await send_email(prospect["Email"], sujet, corps)
            await log_interaction(
                store, contact_id, sujet, corps,
                canal=CANAL_AUTOMATIQUE,
                statut=STATUT_ENVOYE,
                workflow=workflow_name,
                segment=segment_name
            )
        except Exception as e:
            # Échec isolé au contact, le lancement continue
            logger.error(f"[WORKFLOWS] Échec pour le contact {contact_id}: {str(e)}")
            results["failed"] += 1
            actions.append({**action, "status": ACTION_FAILED, "action": "Échec envoi email", "error": str(e)})
            continue

        results["sent"] += 1
        actions.append({**action, "status": ACTION_SUCCESS, "action": "Email envoyé"})

    logger.info(
        f"[WORKFLOWS] \"{workflow_name}\" sur \"{segment_name}\": "
        f"{results['sent']} envoyé(s), {results['failed']} échec(s)"
    )
    return {
        "message": f"Workflow \"{workflow_name}\" lancé pour le segment \"{segment_name}\".",
        "results": results,
        "actions": actions,
    }
