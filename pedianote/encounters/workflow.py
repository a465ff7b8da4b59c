"""Encounter workflow: generation state machine, lab merges and edits.

All AI calls are awaited on the single event loop. Between awaits each
handler replaces ``encounter.result`` in one assignment, so edits never
interleave with a half-applied merge. Responses that arrive after a reset
(the encounter epoch moved on) are dropped.
"""

from typing import Callable

from loguru import logger

from ..core.exceptions import (
    EncounterBusyError,
    PediaNoteException,
    ResultUnavailableError,
    RowNotFoundError,
)
from ..core.logging import log_error_with_context
from ..agents.note_agent.service import NoteAgentService
from ..agents.tools_agent.service import ToolsAgentService
from ..results.models import AnalysisResult, LabField, ResultField
from ..results import operations
from .models import AppState, ConsultationType, PatientInfo
from .speech import SpeechTarget, add_lab_macro, append_segment, remove_last_line
from .state import Encounter, EncounterStore

GENERATION_FALLBACK_MESSAGE = "Erro ao gerar nota."
LAB_FAILURE_PREFIX = "Falha ao processar exames: "


def _failure_message(error: Exception, fallback: str) -> str:
    if isinstance(error, PediaNoteException):
        return error.message or fallback
    return str(error) or fallback


class EncounterWorkflow:
    """Coordinates an encounter's buffers, AI calls and Result Model."""

    def __init__(
        self,
        store: EncounterStore,
        note_service: NoteAgentService,
        tools_service: ToolsAgentService
    ):
        self.store = store
        self.note_service = note_service
        self.tools_service = tools_service

    @staticmethod
    def _is_stale(encounter: Encounter, epoch: int) -> bool:
        if encounter.epoch != epoch:
            logger.info(
                f"Discarding response for encounter {encounter.id}: "
                f"epoch {epoch} superseded by {encounter.epoch}"
            )
            return True
        return False

    # --- Generation -------------------------------------------------------

    async def generate_note(self, encounter_id: str) -> Encounter:
        """Run a full generation and merge it into the encounter.

        A submit without transcript, exam input or existing lab rows is a
        no-op. Failures are recorded on the encounter instead of raised.

        Raises:
            EncounterBusyError: If a generation is already in flight
        """
        encounter = self.store.get(encounter_id)
        if encounter.app_state is AppState.PROCESSING:
            raise EncounterBusyError("Note generation already in progress")
        if not encounter.has_generation_input():
            logger.debug(f"Encounter {encounter_id}: nothing to generate from")
            return encounter

        epoch = encounter.epoch
        encounter.app_state = AppState.PROCESSING
        encounter.error = None

        try:
            fresh = await self.note_service.generate_clinical_note(
                encounter.transcript,
                encounter.exam_input,
                encounter.patient_info,
                encounter.consultation_type
            )
        except Exception as e:
            if self._is_stale(encounter, epoch):
                return encounter
            log_error_with_context(
                error=e,
                context={"encounter_id": encounter_id},
                endpoint="generate_note"
            )
            encounter.error = _failure_message(e, GENERATION_FALLBACK_MESSAGE)
            encounter.app_state = AppState.ERROR
            return encounter

        if self._is_stale(encounter, epoch):
            return encounter

        # Lab rows are read now, not at submit time, so extractions that
        # finished while this call was in flight are kept.
        encounter.result = operations.apply_generation(encounter.result, fresh)
        encounter.app_state = AppState.COMPLETED
        logger.info(
            f"Encounter {encounter_id}: note generated with "
            f"{len(encounter.result.lab_results)} lab rows"
        )
        return encounter

    async def extract_labs(self, encounter_id: str) -> Encounter:
        """Parse the exam-input buffer into lab rows and merge them.

        Runs independently of the generation state machine but is
        single-flight per encounter. On success the parsed text is removed
        from the exam-input buffer.

        Raises:
            EncounterBusyError: If an extraction is already in flight
        """
        encounter = self.store.get(encounter_id)
        if encounter.is_parsing_exams:
            raise EncounterBusyError("Lab extraction already in progress")
        submitted = encounter.exam_input
        if not submitted.strip():
            return encounter

        epoch = encounter.epoch
        encounter.is_parsing_exams = True

        try:
            items = await self.note_service.parse_lab_exams(submitted, encounter.patient_info.age)
        except Exception as e:
            if self._is_stale(encounter, epoch):
                return encounter
            log_error_with_context(
                error=e,
                context={"encounter_id": encounter_id},
                endpoint="extract_labs"
            )
            encounter.is_parsing_exams = False
            encounter.error = LAB_FAILURE_PREFIX + _failure_message(e, "erro desconhecido")
            return encounter

        if self._is_stale(encounter, epoch):
            return encounter

        encounter.is_parsing_exams = False
        encounter.result = operations.apply_lab_extraction(encounter.result, items)
        # Keep anything dictated while the extraction was running.
        if encounter.exam_input.startswith(submitted):
            encounter.exam_input = encounter.exam_input[len(submitted):].lstrip("\n")
        logger.info(f"Encounter {encounter_id}: merged {len(items)} extracted lab rows")
        return encounter

    def new_encounter(self, encounter_id: str) -> Encounter:
        encounter = self.store.get(encounter_id)
        encounter.reset()
        logger.info(f"Encounter {encounter_id} reset (epoch {encounter.epoch})")
        return encounter

    # --- Input buffers ----------------------------------------------------

    def set_patient_info(self, encounter_id: str, patient_info: PatientInfo) -> Encounter:
        encounter = self.store.get(encounter_id)
        encounter.patient_info = patient_info
        return encounter

    def set_consultation_type(self, encounter_id: str, consultation_type: ConsultationType) -> Encounter:
        encounter = self.store.get(encounter_id)
        encounter.consultation_type = consultation_type
        return encounter

    def set_transcript(self, encounter_id: str, text: str) -> Encounter:
        encounter = self.store.get(encounter_id)
        encounter.transcript = text
        return encounter

    def set_exam_input(self, encounter_id: str, text: str) -> Encounter:
        encounter = self.store.get(encounter_id)
        encounter.exam_input = text
        return encounter

    def add_exam_macro(self, encounter_id: str, exam_name: str) -> Encounter:
        encounter = self.store.get(encounter_id)
        encounter.exam_input = add_lab_macro(encounter.exam_input, exam_name)
        return encounter

    def remove_last_exam_line(self, encounter_id: str) -> Encounter:
        encounter = self.store.get(encounter_id)
        encounter.exam_input = remove_last_line(encounter.exam_input)
        return encounter

    def append_speech(self, encounter_id: str, target: SpeechTarget, segment: str) -> Encounter:
        encounter = self.store.get(encounter_id)
        if target is SpeechTarget.TRANSCRIPT:
            encounter.transcript = append_segment(target, encounter.transcript, segment)
        elif target is SpeechTarget.EXAMS:
            encounter.exam_input = append_segment(target, encounter.exam_input, segment)
        return encounter

    async def dictate(self, encounter_id: str, target: SpeechTarget, audio: bytes, filename: str) -> Encounter:
        """Transcribe an audio chunk and append it to the chosen buffer."""
        encounter = self.store.get(encounter_id)
        epoch = encounter.epoch
        segment = await self.tools_service.transcribe_audio(audio, filename)
        if self._is_stale(encounter, epoch):
            return encounter
        return self.append_speech(encounter_id, target, segment)

    # --- Result edits -----------------------------------------------------

    def _edit(self, encounter_id: str, change: Callable[[AnalysisResult], AnalysisResult]) -> Encounter:
        encounter = self.store.get(encounter_id)
        if encounter.result is None:
            raise ResultUnavailableError(details={"encounter_id": encounter_id})
        try:
            encounter.result = change(encounter.result)
        except operations.ResultIndexError as e:
            raise RowNotFoundError(str(e), details={"sequence": e.sequence, "index": e.index})
        return encounter

    def update_field(self, encounter_id: str, field: ResultField, value: str) -> Encounter:
        return self._edit(encounter_id, lambda r: operations.update_field(r, field, value))

    def update_lab_cell(self, encounter_id: str, index: int, field: LabField, value: str) -> Encounter:
        return self._edit(encounter_id, lambda r: operations.update_lab_cell(r, index, field, value))

    def delete_lab(self, encounter_id: str, index: int) -> Encounter:
        return self._edit(encounter_id, lambda r: operations.delete_lab(r, index))

    def add_lab(self, encounter_id: str) -> Encounter:
        return self._edit(encounter_id, operations.add_lab)

    def add_icd(self, encounter_id: str, code: str, description: str) -> Encounter:
        return self._edit(encounter_id, lambda r: operations.add_icd(r, code, description))

    def remove_icd(self, encounter_id: str, index: int) -> Encounter:
        return self._edit(encounter_id, lambda r: operations.remove_icd(r, index))
