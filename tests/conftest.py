"""
Shared fixtures for PediaNote tests.

AI gateways are replaced by in-memory fakes; nothing here touches the network.
"""

import asyncio
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from pedianote.core.config import Config
from pedianote.encounters.state import EncounterStore
from pedianote.encounters.workflow import EncounterWorkflow
from pedianote.results.models import TABLE_PLACEHOLDER, AnalysisResult, IcdCode, LabItem


def make_lab(name: str = "Hemoglobina", status: str = "Normal") -> LabItem:
    return LabItem(name=name, result="12.1", unit="g/dL", reference="11.5 - 14.5", status=status)


def make_result(
    labs: Optional[List[LabItem]] = None,
    note: str = f"# Nota\nPaciente estável.\n\n{TABLE_PLACEHOLDER}",
    icd: Optional[List[IcdCode]] = None,
    instructions: str = "Manter hidratação."
) -> AnalysisResult:
    return AnalysisResult(
        clinical_note=note,
        lab_results=labs or [],
        icd10=icd if icd is not None else [IcdCode(code="J06.9", description="IVAS")],
        patient_instructions=instructions
    )


class FakeNoteService:
    """Stands in for NoteAgentService.

    Set ``gate`` to hold responses until the test releases it.
    """

    def __init__(self):
        self.note_result: AnalysisResult = make_result(labs=[make_lab("Leucócitos")])
        self.lab_items: List[LabItem] = [make_lab("Ferritina", "Baixo")]
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.note_calls = 0
        self.lab_calls = 0

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def generate_clinical_note(self, transcript, exam_text, patient_info, consultation_type):
        self.note_calls += 1
        await self._wait()
        return self.note_result

    async def parse_lab_exams(self, exam_text, patient_age):
        self.lab_calls += 1
        await self._wait()
        return list(self.lab_items)


class FakeToolsService:
    def __init__(self):
        self.transcription = "tosse há três dias"
        self.answer = "Resposta."
        self.audio = b"\x00\x01" * 10
        self.gate: Optional[asyncio.Event] = None
        self.transcribe_calls = 0

    async def transcribe_audio(self, audio, filename):
        self.transcribe_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.transcription

    async def ask_medical_question(self, query, deep_reasoning=False):
        return self.answer

    async def analyze_medical_image(self, image_base64, prompt=None):
        return self.answer

    async def generate_educational_image(self, prompt, image_size, aspect_ratio):
        return "data:image/png;base64,AAAA"

    async def edit_medical_image(self, image_base64, prompt):
        return "data:image/png;base64,BBBB"

    async def generate_speech(self, text):
        return self.audio


@pytest.fixture
def test_config(tmp_path) -> Config:
    return Config(openai_api_key="test-key", log_dir=str(tmp_path / "logs"))


@pytest.fixture
def store() -> EncounterStore:
    return EncounterStore()


@pytest.fixture
def note_service() -> FakeNoteService:
    return FakeNoteService()


@pytest.fixture
def tools_service() -> FakeToolsService:
    return FakeToolsService()


@pytest.fixture
def workflow(store, note_service, tools_service) -> EncounterWorkflow:
    return EncounterWorkflow(store=store, note_service=note_service, tools_service=tools_service)


@pytest.fixture
def client(store, note_service, tools_service, test_config):
    """Test client with every AI dependency overridden."""
    from pedianote.main import app
    from pedianote.core import dependencies

    app.dependency_overrides[dependencies.get_config] = lambda: test_config
    app.dependency_overrides[dependencies.get_encounter_store] = lambda: store
    app.dependency_overrides[dependencies.get_note_agent_service] = lambda: note_service
    app.dependency_overrides[dependencies.get_tools_agent_service] = lambda: tools_service

    yield TestClient(app)

    app.dependency_overrides.clear()
