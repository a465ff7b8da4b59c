"""
Encounter workflow tests: generation state machine, lab merges, stale
responses and single-flight guards.
"""

import asyncio

import pytest

from pedianote.core.exceptions import (
    EncounterBusyError,
    EncounterNotFoundError,
    MissingApiKeyError,
    NoteGenerationError,
    ResultUnavailableError,
    RowNotFoundError,
)
from pedianote.encounters.models import AppState
from pedianote.encounters.speech import SpeechTarget
from pedianote.encounters.state import EncounterStore
from pedianote.results.models import TABLE_PLACEHOLDER, LabField, ResultField

from conftest import make_lab, make_result


async def _until(predicate, attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class TestGenerateNote:
    @pytest.mark.asyncio
    async def test_empty_submit_is_noop(self, workflow, store, note_service):
        encounter = store.create()

        await workflow.generate_note(encounter.id)

        assert note_service.note_calls == 0
        assert encounter.app_state is AppState.IDLE
        assert encounter.result is None

    @pytest.mark.asyncio
    async def test_success_sets_result(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_transcript(encounter.id, "Criança com febre.")

        await workflow.generate_note(encounter.id)

        assert encounter.app_state is AppState.COMPLETED
        assert encounter.result == note_service.note_result
        assert encounter.error is None

    @pytest.mark.asyncio
    async def test_existing_lab_rows_are_kept(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_exam_input(encounter.id, "Hb 12, Ferritina 8")
        note_service.lab_items = [make_lab("Hemoglobina"), make_lab("Ferritina")]
        await workflow.extract_labs(encounter.id)
        assert len(encounter.result.lab_results) == 2

        workflow.set_transcript(encounter.id, "Criança com palidez.")
        await workflow.generate_note(encounter.id)

        fresh_rows = len(note_service.note_result.lab_results)
        assert len(encounter.result.lab_results) == 2 + fresh_rows
        assert [item.name for item in encounter.result.lab_results[:2]] == ["Hemoglobina", "Ferritina"]

    @pytest.mark.asyncio
    async def test_existing_lab_rows_alone_allow_submit(self, workflow, store, note_service):
        encounter = store.create()
        encounter.result = make_result(labs=[make_lab()])

        await workflow.generate_note(encounter.id)

        assert note_service.note_calls == 1

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self, workflow, store, note_service):
        encounter = store.create()
        previous = make_result(labs=[make_lab()])
        encounter.result = previous
        workflow.set_transcript(encounter.id, "texto")
        note_service.error = NoteGenerationError("AI model error: timeout")

        await workflow.generate_note(encounter.id)

        assert encounter.app_state is AppState.ERROR
        assert encounter.error == "AI model error: timeout"
        assert encounter.result is previous

    @pytest.mark.asyncio
    async def test_missing_key_is_recorded(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_transcript(encounter.id, "texto")
        note_service.error = MissingApiKeyError()

        await workflow.generate_note(encounter.id)

        assert encounter.app_state is AppState.ERROR
        assert encounter.error == "API Key is missing"

    @pytest.mark.asyncio
    async def test_second_submit_while_processing_is_rejected(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_transcript(encounter.id, "texto")
        note_service.gate = asyncio.Event()

        first = asyncio.create_task(workflow.generate_note(encounter.id))
        await _until(lambda: note_service.note_calls == 1)

        with pytest.raises(EncounterBusyError):
            await workflow.generate_note(encounter.id)

        note_service.gate.set()
        await first
        assert encounter.app_state is AppState.COMPLETED
        assert note_service.note_calls == 1

    @pytest.mark.asyncio
    async def test_response_after_reset_is_discarded(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_transcript(encounter.id, "texto")
        note_service.gate = asyncio.Event()

        pending = asyncio.create_task(workflow.generate_note(encounter.id))
        await _until(lambda: note_service.note_calls == 1)
        workflow.new_encounter(encounter.id)
        note_service.gate.set()
        await pending

        assert encounter.epoch == 1
        assert encounter.result is None
        assert encounter.app_state is AppState.IDLE

    @pytest.mark.asyncio
    async def test_lab_rows_arriving_mid_generation_are_merged(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_transcript(encounter.id, "texto")
        note_service.gate = asyncio.Event()

        pending = asyncio.create_task(workflow.generate_note(encounter.id))
        await _until(lambda: note_service.note_calls == 1)
        encounter.result = make_result(labs=[make_lab("Chegou antes")])
        note_service.gate.set()
        await pending

        assert encounter.result.lab_results[0].name == "Chegou antes"


class TestExtractLabs:
    @pytest.mark.asyncio
    async def test_creates_placeholder_result_and_clears_buffer(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_exam_input(encounter.id, "Ferritina 8")

        await workflow.extract_labs(encounter.id)

        assert TABLE_PLACEHOLDER in encounter.result.clinical_note
        assert encounter.result.lab_results == note_service.lab_items
        assert encounter.exam_input == ""
        assert encounter.is_parsing_exams is False
        assert encounter.app_state is AppState.IDLE

    @pytest.mark.asyncio
    async def test_blank_input_is_noop(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_exam_input(encounter.id, "   ")

        await workflow.extract_labs(encounter.id)

        assert note_service.lab_calls == 0

    @pytest.mark.asyncio
    async def test_dictation_during_extraction_is_kept(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_exam_input(encounter.id, "Ferritina 8")
        note_service.gate = asyncio.Event()

        pending = asyncio.create_task(workflow.extract_labs(encounter.id))
        await _until(lambda: note_service.lab_calls == 1)
        workflow.append_speech(encounter.id, SpeechTarget.EXAMS, "vitamina d 20")
        note_service.gate.set()
        await pending

        assert encounter.exam_input == "Vitamina d 20"

    @pytest.mark.asyncio
    async def test_failure_keeps_buffer_and_reports(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_exam_input(encounter.id, "Ferritina 8")
        note_service.error = RuntimeError("boom")

        await workflow.extract_labs(encounter.id)

        assert encounter.error == "Falha ao processar exames: boom"
        assert encounter.exam_input == "Ferritina 8"
        assert encounter.is_parsing_exams is False
        assert encounter.result is None

    @pytest.mark.asyncio
    async def test_second_extraction_is_rejected(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_exam_input(encounter.id, "Ferritina 8")
        note_service.gate = asyncio.Event()

        pending = asyncio.create_task(workflow.extract_labs(encounter.id))
        await _until(lambda: note_service.lab_calls == 1)

        with pytest.raises(EncounterBusyError):
            await workflow.extract_labs(encounter.id)

        note_service.gate.set()
        await pending

    @pytest.mark.asyncio
    async def test_response_after_reset_is_discarded(self, workflow, store, note_service):
        encounter = store.create()
        workflow.set_exam_input(encounter.id, "Ferritina 8")
        note_service.gate = asyncio.Event()

        pending = asyncio.create_task(workflow.extract_labs(encounter.id))
        await _until(lambda: note_service.lab_calls == 1)
        workflow.new_encounter(encounter.id)
        note_service.gate.set()
        await pending

        assert encounter.result is None
        assert encounter.exam_input == ""
        assert encounter.is_parsing_exams is False


class TestEncounterEdits:
    def test_reset_keeps_consultation_type(self, workflow, store):
        encounter = store.create()
        workflow.set_transcript(encounter.id, "texto")
        encounter.result = make_result()
        consultation_type = encounter.consultation_type

        workflow.new_encounter(encounter.id)

        assert encounter.transcript == ""
        assert encounter.result is None
        assert encounter.consultation_type is consultation_type

    def test_unknown_encounter(self, workflow):
        with pytest.raises(EncounterNotFoundError):
            workflow.set_transcript("missing", "x")

    def test_edit_without_result(self, workflow, store):
        encounter = store.create()
        with pytest.raises(ResultUnavailableError):
            workflow.add_lab(encounter.id)

    def test_edit_bad_index(self, workflow, store):
        encounter = store.create()
        encounter.result = make_result(labs=[make_lab()])
        with pytest.raises(RowNotFoundError):
            workflow.update_lab_cell(encounter.id, 5, LabField.RESULT, "9")

    def test_edits_replace_result(self, workflow, store):
        encounter = store.create()
        encounter.result = make_result(labs=[make_lab()])

        workflow.update_field(encounter.id, ResultField.CLINICAL_NOTE, "Nova nota")
        workflow.add_icd(encounter.id, " r50 ", "Febre")
        workflow.update_lab_cell(encounter.id, 0, LabField.STATUS, "Alto")

        assert encounter.result.clinical_note == "Nova nota"
        assert encounter.result.icd10[-1].code == "R50"
        assert encounter.result.lab_results[0].status == "Alto"

    def test_exam_macros(self, workflow, store):
        encounter = store.create()
        workflow.add_exam_macro(encounter.id, "PCR")
        workflow.add_exam_macro(encounter.id, "VHS")
        assert encounter.exam_input == "PCR: \nVHS: "
        workflow.remove_last_exam_line(encounter.id)
        assert encounter.exam_input == "PCR: "


class TestDictation:
    @pytest.mark.asyncio
    async def test_dictation_appends_to_transcript(self, workflow, store, tools_service):
        encounter = store.create()
        workflow.set_transcript(encounter.id, "Mãe relata")

        await workflow.dictate(encounter.id, SpeechTarget.TRANSCRIPT, b"audio", "chunk.webm")

        assert encounter.transcript == "Mãe relata tosse há três dias"

    @pytest.mark.asyncio
    async def test_dictation_to_exams(self, workflow, store, tools_service):
        tools_service.transcription = "hemoglobina 11"
        encounter = store.create()

        await workflow.dictate(encounter.id, SpeechTarget.EXAMS, b"audio", "chunk.webm")

        assert encounter.exam_input == "Hemoglobina 11"

    @pytest.mark.asyncio
    async def test_transcription_after_reset_is_discarded(self, workflow, store, tools_service):
        encounter = store.create()
        tools_service.gate = asyncio.Event()

        pending = asyncio.create_task(
            workflow.dictate(encounter.id, SpeechTarget.TRANSCRIPT, b"audio", "chunk.webm")
        )
        await _until(lambda: tools_service.transcribe_calls == 1)
        workflow.new_encounter(encounter.id)
        tools_service.gate.set()
        await pending

        assert encounter.transcript == ""
        assert encounter.exam_input == ""

    @pytest.mark.asyncio
    async def test_transcription_after_close_is_discarded(self, workflow, store, tools_service):
        encounter = store.create()
        tools_service.gate = asyncio.Event()

        pending = asyncio.create_task(
            workflow.dictate(encounter.id, SpeechTarget.EXAMS, b"audio", "chunk.webm")
        )
        await _until(lambda: tools_service.transcribe_calls == 1)
        store.remove(encounter.id)
        tools_service.gate.set()
        await pending

        assert encounter.exam_input == ""
        assert len(store) == 0


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestEncounterStore:
    def test_remove(self, store):
        encounter = store.create()

        store.remove(encounter.id)

        assert len(store) == 0
        with pytest.raises(EncounterNotFoundError):
            store.get(encounter.id)
        with pytest.raises(EncounterNotFoundError):
            store.remove(encounter.id)

    def test_no_timeout_keeps_everything(self, store):
        for _ in range(50):
            store.create()
        assert store.evict_idle() == 0
        assert len(store) == 50

    def test_idle_encounters_are_evicted_on_create(self):
        clock = FakeClock()
        store = EncounterStore(idle_timeout=60, clock=clock)
        idle = store.create()
        active = store.create()

        clock.now = 50
        store.get(active.id)
        clock.now = 100
        store.create()

        assert len(store) == 2
        with pytest.raises(EncounterNotFoundError):
            store.get(idle.id)
        assert store.get(active.id) is active

    def test_busy_encounters_are_not_evicted(self):
        clock = FakeClock()
        store = EncounterStore(idle_timeout=60, clock=clock)
        encounter = store.create()
        encounter.is_parsing_exams = True

        clock.now = 1000

        assert store.evict_idle() == 0
        assert store.get(encounter.id) is encounter

    def test_creation_time_is_timezone_aware(self, store):
        encounter = store.create()
        assert encounter.created_at.tzinfo is not None
