"""Response models and request schemas for the PediaNote API.

This module defines Pydantic models for API requests, responses,
and data validation with proper type hints and documentation.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..encounters.models import AppState, ConsultationType, PatientInfo
from ..encounters.state import Encounter
from ..export.renderer import missing_placeholder_warning
from ..results.models import AnalysisResult, LabField, LabTone, lab_tone


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EncounterCreateInput(_CamelModel):
    """Input model for opening an encounter."""

    consultation_type: ConsultationType = Field(
        default=ConsultationType.SOAP,
        description="Template used for full note generation"
    )


class TextInput(_CamelModel):
    """Replacement text for a buffer or a free-text result field."""

    text: str = Field(
        ...,
        max_length=100000,
        description="New content; may be empty"
    )


class ConsultationTypeInput(_CamelModel):
    consultation_type: ConsultationType


class ExamMacroInput(_CamelModel):
    exam_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Exam name inserted as a new 'Name: ' line",
        examples=["Hemoglobina"]
    )


class LabCellInput(_CamelModel):
    field: LabField = Field(..., description="Lab row cell to replace")
    value: str


class IcdInput(_CamelModel):
    code: str = Field(..., examples=["J06.9"])
    description: str = Field(..., examples=["Infecção aguda das vias aéreas superiores"])


class EncounterView(_CamelModel):
    """Encounter state as returned by every encounter endpoint.

    ``labTones`` runs parallel to ``result.labResults``. ``warnings`` carries
    display notices such as a removed lab-table placeholder.
    """

    id: str
    patient_info: PatientInfo
    consultation_type: ConsultationType
    transcript: str
    exam_input: str
    app_state: AppState
    is_parsing_exams: bool
    result: Optional[AnalysisResult] = None
    lab_tones: List[LabTone] = Field(default_factory=list)
    error: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_encounter(cls, encounter: Encounter) -> "EncounterView":
        result = encounter.result
        warning = missing_placeholder_warning(result)
        return cls(
            id=encounter.id,
            patient_info=encounter.patient_info,
            consultation_type=encounter.consultation_type,
            transcript=encounter.transcript,
            exam_input=encounter.exam_input,
            app_state=encounter.app_state,
            is_parsing_exams=encounter.is_parsing_exams,
            result=result,
            lab_tones=[lab_tone(item.status) for item in result.lab_results] if result else [],
            error=encounter.error,
            warnings=[warning] if warning else []
        )


class ClipboardResponse(_CamelModel):
    section: str
    text: str


class HealthCheckResponse(BaseModel):
    """Health check response model."""

    model_config = ConfigDict(protected_namespaces=())

    status: str = Field(
        ...,
        description="Service health status",
        examples=["healthy"]
    )

    service: str = Field(
        ...,
        description="Service name",
        examples=["pedianote"]
    )

    version: str = Field(
        ...,
        description="Service version",
        examples=["1.0.0"]
    )

    model_loaded: bool = Field(
        ...,
        description="Whether an AI credential is configured and agents can be built"
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Health check timestamp"
    )

    uptime: Optional[float] = Field(
        None,
        description="Service uptime in seconds"
    )


class ErrorResponse(BaseModel):
    """Error response model."""

    error: Dict[str, Any] = Field(
        ...,
        description="Error details",
        examples=[{
            "message": "Encounter not found",
            "code": "ENCOUNTER_NOT_FOUND",
            "type": "EncounterNotFoundError"
        }]
    )
