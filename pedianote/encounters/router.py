"""Router for encounter endpoints: buffers, generation, result edits and export."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import HTMLResponse, Response
from loguru import logger

from ..core.config import Config
from ..core.dependencies import get_config, get_encounter_store, get_encounter_workflow
from ..core.exceptions import ResultUnavailableError, get_error_responses
from ..core.security import validate_audio_upload
from ..core.schemas import (
    ClipboardResponse,
    ConsultationTypeInput,
    EncounterCreateInput,
    EncounterView,
    ExamMacroInput,
    IcdInput,
    LabCellInput,
    TextInput,
)
from ..export.renderer import (
    WORD_MIME_TYPE,
    ExportFormat,
    ExportSection,
    build_export_document,
    clipboard_text,
    content_disposition,
    export_filename,
    wrap_html,
)
from ..results.models import AnalysisResult, ResultField
from .models import PatientInfo
from .speech import SpeechTarget
from .state import EncounterStore
from .workflow import EncounterWorkflow

router = APIRouter(
    prefix="/encounters",
    tags=["Encounters"],
    responses=get_error_responses()
)


def _require_result(store: EncounterStore, encounter_id: str) -> AnalysisResult:
    encounter = store.get(encounter_id)
    if encounter.result is None:
        raise ResultUnavailableError(details={"encounter_id": encounter_id})
    return encounter.result


@router.post("", response_model=EncounterView, status_code=201, summary="Open Encounter")
async def create_encounter(
    input_data: Optional[EncounterCreateInput] = None,
    store: EncounterStore = Depends(get_encounter_store)
) -> EncounterView:
    input_data = input_data or EncounterCreateInput()
    encounter = store.create(input_data.consultation_type)
    return EncounterView.from_encounter(encounter)


@router.get("/{encounter_id}", response_model=EncounterView, summary="Get Encounter")
async def get_encounter(
    encounter_id: str,
    store: EncounterStore = Depends(get_encounter_store)
) -> EncounterView:
    return EncounterView.from_encounter(store.get(encounter_id))


@router.delete("/{encounter_id}", status_code=204, summary="Close Encounter")
async def delete_encounter(
    encounter_id: str,
    store: EncounterStore = Depends(get_encounter_store)
) -> Response:
    store.remove(encounter_id)
    return Response(status_code=204)


@router.post(
    "/{encounter_id}/reset",
    response_model=EncounterView,
    summary="New Encounter",
    description="Clear patient data, buffers and result; responses still in flight are discarded"
)
async def reset_encounter(
    encounter_id: str,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.new_encounter(encounter_id))


# Input buffers

@router.put("/{encounter_id}/patient", response_model=EncounterView)
async def set_patient(
    encounter_id: str,
    patient_info: PatientInfo,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.set_patient_info(encounter_id, patient_info))


@router.put("/{encounter_id}/consultation-type", response_model=EncounterView)
async def set_consultation_type(
    encounter_id: str,
    input_data: ConsultationTypeInput,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    encounter = workflow.set_consultation_type(encounter_id, input_data.consultation_type)
    return EncounterView.from_encounter(encounter)


@router.put("/{encounter_id}/transcript", response_model=EncounterView)
async def set_transcript(
    encounter_id: str,
    input_data: TextInput,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.set_transcript(encounter_id, input_data.text))


@router.put("/{encounter_id}/exam-input", response_model=EncounterView)
async def set_exam_input(
    encounter_id: str,
    input_data: TextInput,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.set_exam_input(encounter_id, input_data.text))


@router.post("/{encounter_id}/exam-input/macro", response_model=EncounterView)
async def add_exam_macro(
    encounter_id: str,
    input_data: ExamMacroInput,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.add_exam_macro(encounter_id, input_data.exam_name))


@router.delete("/{encounter_id}/exam-input/last-line", response_model=EncounterView)
async def remove_last_exam_line(
    encounter_id: str,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.remove_last_exam_line(encounter_id))


@router.post(
    "/{encounter_id}/speech/{target}",
    response_model=EncounterView,
    summary="Dictate Segment",
    description="Transcribe an uploaded audio chunk and append it to the transcript or exam input"
)
async def dictate(
    encounter_id: str,
    target: SpeechTarget,
    file: UploadFile = File(...),
    workflow: EncounterWorkflow = Depends(get_encounter_workflow),
    config: Config = Depends(get_config)
) -> EncounterView:
    audio = await file.read()
    filename = validate_audio_upload(file.filename or "", audio, config)
    encounter = await workflow.dictate(encounter_id, target, audio, filename)
    return EncounterView.from_encounter(encounter)


# AI operations

@router.post(
    "/{encounter_id}/generate",
    response_model=EncounterView,
    summary="Generate Clinical Note",
    description=(
        "Generate note, lab rows, ICD-10 codes and patient instructions. "
        "AI failures are reported in the encounter's error field."
    )
)
async def generate(
    encounter_id: str,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    logger.info(f"Received note generation request for encounter {encounter_id}")
    return EncounterView.from_encounter(await workflow.generate_note(encounter_id))


@router.post(
    "/{encounter_id}/labs/extract",
    response_model=EncounterView,
    summary="Extract Lab Results",
    description="Parse the exam input into lab rows and append them to the result"
)
async def extract_labs(
    encounter_id: str,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    logger.info(f"Received lab extraction request for encounter {encounter_id}")
    return EncounterView.from_encounter(await workflow.extract_labs(encounter_id))


# Result edits

@router.put("/{encounter_id}/result/{field}", response_model=EncounterView)
async def update_result_field(
    encounter_id: str,
    field: ResultField,
    input_data: TextInput,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.update_field(encounter_id, field, input_data.text))


@router.post("/{encounter_id}/result/labs", response_model=EncounterView)
async def add_lab_row(
    encounter_id: str,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.add_lab(encounter_id))


@router.patch("/{encounter_id}/result/labs/{index}", response_model=EncounterView)
async def update_lab_row(
    encounter_id: str,
    index: int,
    input_data: LabCellInput,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    encounter = workflow.update_lab_cell(encounter_id, index, input_data.field, input_data.value)
    return EncounterView.from_encounter(encounter)


@router.delete("/{encounter_id}/result/labs/{index}", response_model=EncounterView)
async def delete_lab_row(
    encounter_id: str,
    index: int,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.delete_lab(encounter_id, index))


@router.post("/{encounter_id}/result/icd", response_model=EncounterView)
async def add_icd_code(
    encounter_id: str,
    input_data: IcdInput,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    encounter = workflow.add_icd(encounter_id, input_data.code, input_data.description)
    return EncounterView.from_encounter(encounter)


@router.delete("/{encounter_id}/result/icd/{index}", response_model=EncounterView)
async def remove_icd_code(
    encounter_id: str,
    index: int,
    workflow: EncounterWorkflow = Depends(get_encounter_workflow)
) -> EncounterView:
    return EncounterView.from_encounter(workflow.remove_icd(encounter_id, index))


# Export

@router.get(
    "/{encounter_id}/export/{section}",
    summary="Export Section",
    description="Word download, or an HTML page that opens the print dialog (pdf/print)",
    response_class=Response
)
async def export_section(
    encounter_id: str,
    section: ExportSection,
    format: ExportFormat = Query(ExportFormat.WORD),
    store: EncounterStore = Depends(get_encounter_store),
    config: Config = Depends(get_config)
) -> Response:
    result = _require_result(store, encounter_id)
    document = build_export_document(section, result)

    if format is ExportFormat.WORD:
        filename = export_filename(document)
        logger.info(f"Exporting {section.value} of encounter {encounter_id} as {filename}")
        return Response(
            content=wrap_html(document),
            media_type=WORD_MIME_TYPE,
            headers={"Content-Disposition": content_disposition(filename)}
        )

    # pdf and print share the same page: the browser's print dialog offers both.
    return HTMLResponse(content=wrap_html(document, print_delay_ms=config.print_settle_delay_ms))


@router.get("/{encounter_id}/clipboard/{section}", response_model=ClipboardResponse)
async def clipboard(
    encounter_id: str,
    section: ExportSection,
    store: EncounterStore = Depends(get_encounter_store)
) -> ClipboardResponse:
    result = _require_result(store, encounter_id)
    return ClipboardResponse(section=section.value, text=clipboard_text(section, result))
