"""
Courtage CRM — Routes HTTP /api
Feuilles en mémoire, faux serveur Brevo, envoi d'email capturé.
Run: cd backend && pytest tests/test_api_routes.py -v
"""

import httpx

from config import SHEET_INTERACTIONS, SHEET_SETTINGS, SHEET_WORKFLOWS
from routes.deps import get_brevo
from server import app
from services.brevo import BrevoClient


def test_root(client):
    assert client.get("/").json()["status"] == "running"


# ═══════════════════════════════════════════════════════════════
# 1. SEGMENTS ET PROSPECTS
# ═══════════════════════════════════════════════════════════════

class TestSegmentRoutes:
    def test_fixed_segments(self, client):
        response = client.get("/api/ia/segments")
        assert response.status_code == 200
        segments = response.json()
        assert "Non joignables" in segments
        assert sorted(segments["Par région"]) == ["Lyon", "Lyon 3e", "Marseille", "lyon"]

    def test_filtered_segment(self, client):
        response = client.get("/api/ia/segments", params={"ville": "lyon", "estClient": "true"})
        members = response.json()["Résultat de la recherche IA"]
        assert sorted(p["Identifiant contact"] for p in members) == ["C1", "C3", "C5"]

    def test_invalid_filter(self, client):
        response = client.get("/api/ia/segments", params={"ageMin": "quarante"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_merged_prospects(self, client):
        prospects = client.get("/api/ia/prospects-merged").json()
        assert len(prospects) == 6
        c1 = next(p for p in prospects if p["Identifiant contact"] == "C1")
        assert c1["Nombre de contrats"] == 2
        assert c1["Nombre de contrats actifs"] == 1

    def test_non_repondants(self, client):
        response = client.get("/api/ia/non-repondants")
        assert response.status_code == 200
        assert [p["Identifiant contact"] for p in response.json()] == ["C3"]

    def test_export_to_brevo(self, client):
        response = client.post("/api/ia/segments/export-to-brevo", json={
            "segmentName": "Lyon",
            "contacts": [{"Email": "marie@example.fr", "Nom": "Durand"}, {"Email": ""}],
        })
        assert response.status_code == 200
        assert response.json()["listId"] == 7
        assert response.json()["added"] == 1

    def test_export_requires_contacts(self, client):
        response = client.post("/api/ia/segments/export-to-brevo", json={"segmentName": "Lyon"})
        assert response.status_code == 400


class TestLaunchWorkflowRoute:
    def test_launch(self, client, sent_emails, store):
        response = client.post("/api/ia/launch-workflow", json={"segmentName": "Par région", "workflowId": 1})
        assert response.status_code == 200
        assert response.json()["results"] == {"sent": 4, "failed": 1}
        assert len(sent_emails) == 4
        assert store.tables[SHEET_INTERACTIONS][-1][8] == "Par région"

    def test_missing_fields(self, client):
        response = client.post("/api/ia/launch-workflow", json={"segmentName": "Par région"})
        assert response.status_code == 400
        assert "workflowId" in response.json()["error"]

    def test_unknown_segment(self, client):
        response = client.post("/api/ia/launch-workflow", json={"segmentName": "Fantôme", "workflowId": 1})
        assert response.status_code == 404

    def test_malformed_body(self, client):
        response = client.post(
            "/api/ia/launch-workflow",
            content="pas du json",
            headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Requête invalide."


class TestIaRoutes:
    def test_prompt_required(self, client):
        assert client.post("/api/ia/generate-email-content", json={}).status_code == 400

    def test_query_required(self, client):
        assert client.post("/api/ia/analyze-segment-query", json={"query": ""}).status_code == 400


# ═══════════════════════════════════════════════════════════════
# 2. RAPPORTS ET SETTINGS
# ═══════════════════════════════════════════════════════════════

class TestReportRoutes:
    def test_report(self, client):
        report = client.get("/api/reports").json()
        assert report["global"]["totalActiveContrats"] == 3
        assert report["global"]["totalCampaigns"] == 3
        assert [r["commercial"] for r in report["commercialDetails"]] == ["Non attribué", "Bob", "Alice Martin"]
        assert report["byOrigine"]["Web"]["tauxConversion"] == 66.67

    def test_period(self, client):
        report = client.get("/api/reports", params={"startDate": "2024-02-01", "endDate": "2024-04-30"}).json()
        assert report["global"]["totalContrats"] == 2

    def test_brevo_auth_failure(self, client):
        app.dependency_overrides[get_brevo] = lambda: BrevoClient(
            api_key="wrong", transport=httpx.MockTransport(lambda r: httpx.Response(401, json={}))
        )
        response = client.get("/api/reports")
        assert response.status_code == 401
        assert "Brevo" in response.json()["error"]


class TestSettingsRoutes:
    def test_get_completes_missing_keys(self, client):
        settings = client.get("/api/admin/settings").json()
        assert settings["smtpHost"] == "smtp.example.fr"
        assert settings["commission_NEOLIANE_annee1"] == ""

    def test_post_rewrites_sheet(self, client, store):
        response = client.post("/api/admin/settings", json={"smtpHost": "mail.example.fr", "cpl": 12})
        assert response.status_code == 200
        assert store.tables[SHEET_SETTINGS][1] == ["smtpHost", "mail.example.fr"]
        assert store.tables[SHEET_SETTINGS][2] == ["cpl", "12"]


# ═══════════════════════════════════════════════════════════════
# 3. CAMPAGNES
# ═══════════════════════════════════════════════════════════════

CAMPAIGN = {
    "name": "Relance Lyon",
    "subject": "Votre devis",
    "htmlContent": "<p>Bonjour</p>",
    "segmentId": "Par région",
    "sender": {"name": "Courtage", "email": "crm@example.fr"},
}


class TestCampaignRoutes:
    def test_create(self, client, fake_brevo):
        response = client.post("/api/campaigns", json=CAMPAIGN)
        assert response.status_code == 201
        body = response.json()
        assert body["campaign"] == {"id": 42}
        assert body["list"]["contactsAdded"] == 4
        list_request = next(r for r in fake_brevo.requests if r.url.path.endswith("/contacts/lists"))
        assert b"Segment: Par r" in list_request.content

    def test_missing_fields(self, client):
        response = client.post("/api/campaigns", json={"name": "x"})
        assert response.status_code == 400
        assert response.json()["details"]["missingFields"] == ["subject", "htmlContent", "segmentId", "sender"]

    def test_unknown_segment(self, client):
        response = client.post("/api/campaigns", json={**CAMPAIGN, "segmentId": "Fantôme"})
        assert response.status_code == 404

    def test_segment_without_valid_email(self, client):
        response = client.post("/api/campaigns", json={**CAMPAIGN, "segmentId": "Non joignables"})
        assert response.status_code == 400
        assert response.json()["details"]["listId"] == 7

    def test_list_get_and_send(self, client):
        assert len(client.get("/api/campaigns").json()) == 3
        assert client.get("/api/campaigns/1").json()["name"] == "Printemps"
        assert client.post("/api/campaigns/1/send").json()["success"] is True

    def test_unknown_campaign(self, client):
        response = client.get("/api/campaigns/99")
        assert response.status_code == 404
        assert response.json() == {"error": "Campagne d'ID 99 non trouvée."}

    def test_connection(self, client):
        assert client.get("/api/campaigns/test-connection").json()["success"] is True


# ═══════════════════════════════════════════════════════════════
# 4. WORKFLOWS, SCÉNARIOS, INTERACTIONS
# ═══════════════════════════════════════════════════════════════

class TestWorkflowRoutes:
    def test_list_raw_sheet(self, client):
        table = client.get("/api/workflows").json()
        assert table[0][0] == "ID"
        assert len(table) == 4

    def test_create(self, client, store):
        response = client.post("/api/workflows", json={
            "Nom": "Bienvenue", "Déclencheur": "Manuel", "Étapes": [{"type": "email"}],
            "Statut": "Actif", "Sujet_Email": "Bienvenue", "Corps_Email": "<p>Bonjour</p>",
        })
        assert response.status_code == 201
        assert response.json()["id"] == 5
        assert store.tables[SHEET_WORKFLOWS][-1][1] == "Bienvenue"

    def test_create_missing_fields(self, client):
        response = client.post("/api/workflows", json={"Nom": "Incomplet"})
        assert response.status_code == 400
        assert "Étapes" in response.json()["details"]["missingFields"]

    def test_update_and_delete(self, client, store):
        assert client.put("/api/workflows/1", json={"Statut": "Inactif"}).status_code == 200
        assert store.tables[SHEET_WORKFLOWS][1][4] == "Inactif"
        assert client.delete("/api/workflows/1").status_code == 200
        assert client.delete("/api/workflows/1").status_code == 404


class TestScenarioRoutes:
    def test_crud(self, client):
        assert client.post("/api/scenarios-emailing", json={"Nom": "Relance"}).status_code == 400
        response = client.post("/api/scenarios-emailing", json={"Nom": "Relance", "Contenu": "<p>Relance</p>"})
        assert response.status_code == 201
        assert response.json()["id"] == 2
        assert client.put("/api/scenarios-emailing/2", json={"Description": "Suivi"}).status_code == 200
        assert client.get("/api/scenarios-emailing").json()[-1] == [2, "Relance", "Suivi", "<p>Relance</p>"]


class TestInteractionRoutes:
    def test_create_and_history(self, client):
        response = client.post("/api/interactions", json={"prospectId": "C1", "sujet": "Appel", "message": "Rappel"})
        assert response.status_code == 201
        assert response.json()["data"][1:7] == ["C1", "Email", "Manuel", "Appel", "Rappel", "Envoyé"]

        history = client.get("/api/interactions/prospect/C1").json()["data"]
        assert [h["Sujet"] for h in history] == ["Devis", "Appel"]

    def test_create_requires_fields(self, client):
        assert client.post("/api/interactions", json={"prospectId": "C1"}).status_code == 400

    def test_send_email(self, client, sent_emails):
        response = client.post("/api/email/send", json={"to": "a@b.fr", "subject": "s", "html": "<p>h</p>"})
        assert response.status_code == 200
        assert sent_emails == [("a@b.fr", "s", "<p>h</p>")]

    def test_send_email_requires_fields(self, client):
        response = client.post("/api/email/send", json={"to": "a@b.fr"})
        assert response.status_code == 400
        assert response.json()["error"] == "Les champs to, subject, et html sont requis."
