"""
Courtage CRM - Routes Workflows et Scénarios emailing

Lecture: la feuille brute (en-tête + lignes).
Mise à jour partielle: un champ absent ou vide garde la valeur existante.
"""

from fastapi import APIRouter, Depends

from config import SHEET_WORKFLOWS, SHEET_SCENARIOS
from models.workflow import WorkflowIn, ScenarioIn
from routes.deps import get_store
from services.errors import ValidationError
from services.row_store import RowStore
from services.workflows import (
    create_workflow,
    update_workflow,
    create_scenario,
    update_scenario,
    delete_sheet_row,
)

router = APIRouter(prefix="/workflows", tags=["Workflows"])
scenarios_router = APIRouter(prefix="/scenarios-emailing", tags=["Scénarios emailing"])


# ---- Workflows ----

@router.get("")
async def list_workflows(store: RowStore = Depends(get_store)):
    return await store.get_table(SHEET_WORKFLOWS)


@router.post("", status_code=201)
async def add_workflow(data: WorkflowIn, store: RowStore = Depends(get_store)):
    if data.missing_for_create():
        raise ValidationError(
            "Tous les champs (Nom, Déclencheur, Étapes, Statut, Sujet Email, Corps Email) sont requis.",
            details={"missingFields": data.missing_for_create()}
        )
    new_id = await create_workflow(store, data)
    return {"message": "Workflow créé avec succès.", "id": new_id}


@router.put("/{workflow_id}")
async def edit_workflow(workflow_id: str, data: WorkflowIn, store: RowStore = Depends(get_store)):
    await update_workflow(store, workflow_id, data)
    return {"message": "Workflow mis à jour avec succès."}


@router.delete("/{workflow_id}")
async def remove_workflow(workflow_id: str, store: RowStore = Depends(get_store)):
    await delete_sheet_row(store, SHEET_WORKFLOWS, workflow_id)
    return {"message": "Workflow supprimé avec succès."}


# ---- Scénarios emailing ----

@scenarios_router.get("")
async def list_scenarios(store: RowStore = Depends(get_store)):
    return await store.get_table(SHEET_SCENARIOS)


@scenarios_router.post("", status_code=201)
async def add_scenario(data: ScenarioIn, store: RowStore = Depends(get_store)):
    if not data.Nom or not data.Contenu:
        raise ValidationError("Les champs Nom et Contenu sont requis.")
    new_id = await create_scenario(store, data)
    return {"message": "Scénario créé avec succès.", "id": new_id}


@scenarios_router.put("/{scenario_id}")
async def edit_scenario(scenario_id: str, data: ScenarioIn, store: RowStore = Depends(get_store)):
    await update_scenario(store, scenario_id, data)
    return {"message": "Scénario mis à jour avec succès."}


@scenarios_router.delete("/{scenario_id}")
async def remove_scenario(scenario_id: str, store: RowStore = Depends(get_store)):
    await delete_sheet_row(store, SHEET_SCENARIOS, scenario_id)
    return {"message": "Scénario supprimé avec succès."}
