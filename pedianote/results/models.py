"""Result Model records shared by generation, editing and export.

The field descriptions are part of the JSON schema the AI service must
satisfy, so they are written in the service's output language.
"""

from enum import Enum
from typing import List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TABLE_PLACEHOLDER = "{{TABELA_EXAMES}}"


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python, immutable values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True
    )


class LabItem(_WireModel):
    """One row of the lab table."""

    name: str = Field(..., description="Nome do exame (ex: Hemoglobina)")
    result: str = Field(..., description="Resultado numérico")
    unit: str = Field(..., description="Unidade (ex: g/dL)")
    reference: str = Field(..., description="Intervalo de referência (ex: 11.5 - 14.5)")
    status: str = Field(..., description="Status (ex: Normal, Alto, Baixo)")


class IcdCode(_WireModel):
    """ICD-10 code attached to the encounter."""

    code: str = Field(..., description="Código CID-10")
    description: str = Field(..., description="Descrição do código em Português")


class AnalysisResult(_WireModel):
    """Generated and edited clinical content of one encounter."""

    clinical_note: str = Field(
        ...,
        description=(
            "A nota clínica completa formatada em Markdown, seguindo ESTRITAMENTE a estrutura "
            f"solicitada. Use o placeholder {TABLE_PLACEHOLDER} onde a tabela de exames deveria estar."
        )
    )
    lab_results: List[LabItem] = Field(
        ...,
        description="Dados estruturados dos exames laboratoriais."
    )
    icd10: List[IcdCode] = Field(...)
    patient_instructions: str = Field(
        ...,
        description="Instruções para os pais em linguagem simples e clara."
    )


class LabExtraction(_WireModel):
    """Response contract of the lab-only extraction call."""

    results: List[LabItem] = Field(
        ...,
        description="Lista de exames estruturados extraídos do texto."
    )


class ResultField(str, Enum):
    """Free-text fields of the result that can be replaced wholesale."""

    CLINICAL_NOTE = "clinicalNote"
    PATIENT_INSTRUCTIONS = "patientInstructions"


class LabField(str, Enum):
    """Editable cells of a lab row."""

    NAME = "name"
    RESULT = "result"
    UNIT = "unit"
    REFERENCE = "reference"
    STATUS = "status"


class LabTone(str, Enum):
    """Display tone of a lab row, derived from its status text."""

    HIGH = "high"
    LOW = "low"
    ATTENTION = "attention"
    NORMAL = "normal"


def lab_tone(status: str) -> LabTone:
    """Classify a free-text status by substring, first match wins."""
    if "Alto" in status:
        return LabTone.HIGH
    if "Baixo" in status:
        return LabTone.LOW
    if "Atenção" in status:
        return LabTone.ATTENTION
    return LabTone.NORMAL
