"""HTTP surface tests with fake AI gateways injected through dependency overrides."""

import pytest
from starlette.websockets import WebSocketDisconnect

from pedianote.core.config import Config
from pedianote.core import dependencies
from pedianote.agents.note_agent.service import NoteAgentService
from pedianote.agents.tools_agent.service import ToolsAgentService
from pedianote.results.models import TABLE_PLACEHOLDER

from conftest import make_lab, make_result


def _create(client) -> str:
    response = client.post("/api/encounters", json={"consultationType": "PEDIATRIC"})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.mark.unit
def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Process-Time" in response.headers


@pytest.mark.unit
def test_create_and_get_encounter(client):
    encounter_id = _create(client)

    data = client.get(f"/api/encounters/{encounter_id}").json()

    assert data["consultationType"] == "PEDIATRIC"
    assert data["appState"] == "IDLE"
    assert data["result"] is None
    assert data["patientInfo"]["gender"] == "Masculino"


@pytest.mark.unit
def test_create_without_body(client):
    response = client.post("/api/encounters")
    assert response.status_code == 201
    assert response.json()["consultationType"] == "SOAP"


@pytest.mark.unit
def test_unknown_encounter_is_404(client):
    response = client.get("/api/encounters/nope")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ENCOUNTER_NOT_FOUND"


@pytest.mark.unit
def test_buffers_and_patient(client):
    encounter_id = _create(client)
    base = f"/api/encounters/{encounter_id}"

    client.put(f"{base}/patient", json={"name": "Ana", "age": "6 meses", "gender": "Feminino", "visitDate": "2026-01-10"})
    client.put(f"{base}/transcript", json={"text": "Febre há 2 dias."})
    client.post(f"{base}/exam-input/macro", json={"examName": "Hemoglobina"})
    data = client.put(f"{base}/consultation-type", json={"consultationType": "NEURO"}).json()

    assert data["patientInfo"]["name"] == "Ana"
    assert data["patientInfo"]["visitDate"] == "2026-01-10"
    assert data["transcript"] == "Febre há 2 dias."
    assert data["examInput"] == "Hemoglobina: "
    assert data["consultationType"] == "NEURO"

    data = client.delete(f"{base}/exam-input/last-line").json()
    assert data["examInput"] == ""


@pytest.mark.unit
def test_generate_and_edit_flow(client, note_service):
    encounter_id = _create(client)
    base = f"/api/encounters/{encounter_id}"
    client.put(f"{base}/transcript", json={"text": "Criança com tosse."})

    data = client.post(f"{base}/generate").json()
    assert data["appState"] == "COMPLETED"
    assert len(data["result"]["labResults"]) == 1
    assert data["labTones"] == ["normal"]

    data = client.post(f"{base}/result/labs").json()
    assert len(data["result"]["labResults"]) == 2

    data = client.patch(f"{base}/result/labs/1", json={"field": "status", "value": "Baixo"}).json()
    assert data["labTones"] == ["normal", "low"]

    data = client.delete(f"{base}/result/labs/0").json()
    assert len(data["result"]["labResults"]) == 1

    data = client.post(f"{base}/result/icd", json={"code": " j00 ", "description": "Resfriado"}).json()
    assert data["result"]["icd10"][-1] == {"code": "J00", "description": "Resfriado"}

    data = client.delete(f"{base}/result/icd/0").json()
    assert [code["code"] for code in data["result"]["icd10"]] == ["J00"]

    data = client.put(f"{base}/result/clinicalNote", json={"text": "Nota sem tabela"}).json()
    assert data["result"]["clinicalNote"] == "Nota sem tabela"
    assert data["warnings"] == [f"Aviso: Tag {TABLE_PLACEHOLDER} removida."]


@pytest.mark.unit
def test_generation_failure_returns_state(client, note_service):
    note_service.error = RuntimeError("indisponível")
    encounter_id = _create(client)
    client.put(f"/api/encounters/{encounter_id}/transcript", json={"text": "texto"})

    response = client.post(f"/api/encounters/{encounter_id}/generate")

    assert response.status_code == 200
    assert response.json()["appState"] == "ERROR"
    assert response.json()["error"] == "indisponível"


@pytest.mark.unit
def test_missing_api_key_is_reported_on_encounter(client, tmp_path):
    from pedianote.main import app

    no_key = Config(openai_api_key=None, log_dir=str(tmp_path))
    app.dependency_overrides[dependencies.get_note_agent_service] = lambda: NoteAgentService(no_key, None)
    encounter_id = _create(client)
    client.put(f"/api/encounters/{encounter_id}/transcript", json={"text": "texto"})

    data = client.post(f"/api/encounters/{encounter_id}/generate").json()

    assert data["appState"] == "ERROR"
    assert data["error"] == "API Key is missing"


@pytest.mark.unit
def test_lab_extraction(client):
    encounter_id = _create(client)
    base = f"/api/encounters/{encounter_id}"
    client.put(f"{base}/exam-input", json={"text": "Ferritina 8"})

    data = client.post(f"{base}/labs/extract").json()

    assert data["examInput"] == ""
    assert data["isParsingExams"] is False
    assert TABLE_PLACEHOLDER in data["result"]["clinicalNote"]
    assert data["labTones"] == ["low"]


@pytest.mark.unit
def test_edit_without_result_is_404(client):
    encounter_id = _create(client)
    response = client.post(f"/api/encounters/{encounter_id}/result/labs")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "RESULT_UNAVAILABLE"


@pytest.mark.unit
def test_bad_row_index_is_404(client, store):
    encounter_id = _create(client)
    store.get(encounter_id).result = make_result(labs=[make_lab()])

    response = client.delete(f"/api/encounters/{encounter_id}/result/labs/3")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ROW_NOT_FOUND"


@pytest.mark.unit
def test_word_export(client, store):
    encounter_id = _create(client)
    store.get(encounter_id).result = make_result(labs=[make_lab("Ferritina")])

    response = client.get(f"/api/encounters/{encounter_id}/export/NOTE?format=word")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/vnd.ms-word")
    assert "nota_cl%C3%ADnica.doc" in response.headers["content-disposition"]
    assert "Ferritina" in response.text
    assert "window.print" not in response.text


@pytest.mark.unit
def test_print_export(client, store):
    encounter_id = _create(client)
    store.get(encounter_id).result = make_result()

    response = client.get(f"/api/encounters/{encounter_id}/export/FULL?format=print")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "window.print" in response.text


@pytest.mark.unit
def test_clipboard(client, store):
    encounter_id = _create(client)
    store.get(encounter_id).result = make_result(labs=[make_lab("Ferritina")])

    data = client.get(f"/api/encounters/{encounter_id}/clipboard/NOTE").json()

    assert data["section"] == "NOTE"
    assert "| Ferritina |" in data["text"]
    assert TABLE_PLACEHOLDER not in data["text"]


@pytest.mark.unit
def test_dictation_upload(client):
    encounter_id = _create(client)

    response = client.post(
        f"/api/encounters/{encounter_id}/speech/transcript",
        files={"file": ("chunk.webm", b"fake-audio", "audio/webm")}
    )

    assert response.status_code == 200
    assert response.json()["transcript"] == "tosse há três dias"


@pytest.mark.unit
def test_empty_dictation_upload_is_400(client):
    encounter_id = _create(client)

    response = client.post(
        f"/api/encounters/{encounter_id}/speech/exams",
        files={"file": ("chunk.webm", b"", "audio/webm")}
    )

    assert response.status_code == 400


@pytest.mark.unit
def test_reset(client, store):
    encounter_id = _create(client)
    store.get(encounter_id).result = make_result()

    data = client.post(f"/api/encounters/{encounter_id}/reset").json()

    assert data["result"] is None
    assert data["consultationType"] == "PEDIATRIC"


@pytest.mark.unit
def test_delete_encounter(client, store):
    encounter_id = _create(client)

    response = client.delete(f"/api/encounters/{encounter_id}")

    assert response.status_code == 204
    assert len(store) == 0
    assert client.get(f"/api/encounters/{encounter_id}").status_code == 404
    assert client.delete(f"/api/encounters/{encounter_id}").status_code == 404


class TestTools:
    @pytest.mark.unit
    def test_ask(self, client):
        response = client.post("/api/tools/ask", json={"query": "Dose de amoxicilina?", "deepReasoning": True})
        assert response.status_code == 200
        assert response.json() == {"text": "Resposta."}

    @pytest.mark.unit
    def test_image_generation(self, client):
        response = client.post("/api/tools/images/generate", json={"prompt": "ciclo da dengue", "aspectRatio": "16:9"})
        assert response.status_code == 200
        assert response.json()["dataUrl"].startswith("data:image/png;base64,")

    @pytest.mark.unit
    def test_speech_returns_pcm(self, client, tools_service):
        response = client.post("/api/tools/speech", json={"text": "Olá"})
        assert response.status_code == 200
        assert response.content == tools_service.audio
        assert response.headers["x-sample-rate"] == "24000"

    @pytest.mark.unit
    def test_missing_key(self, client, tmp_path):
        from pedianote.main import app

        no_key = Config(openai_api_key=None, log_dir=str(tmp_path))
        app.dependency_overrides[dependencies.get_tools_agent_service] = lambda: ToolsAgentService(no_key, None)

        response = client.post("/api/tools/ask", json={"query": "Dose?"})

        assert response.json()["error"]["code"] == "API_KEY_MISSING"
        assert response.json()["error"]["message"] == "API Key is missing"


@pytest.mark.unit
def test_live_session_without_key_is_refused(client, tmp_path):
    from pedianote.main import app

    no_key = Config(openai_api_key=None, log_dir=str(tmp_path))
    app.dependency_overrides[dependencies.get_config] = lambda: no_key
    app.dependency_overrides[dependencies.get_http_client_dependency] = lambda: None

    with client.websocket_connect("/ws/live") as websocket:
        message = websocket.receive_json()
        assert message == {"type": "error", "message": "API Key is missing"}
        with pytest.raises(WebSocketDisconnect) as exc_info:
            websocket.receive_json()

    assert exc_info.value.code == 1008
