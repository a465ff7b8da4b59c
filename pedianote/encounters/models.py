"""Encounter-level records: patient data, consultation type and app state."""

from datetime import date
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Gender(str, Enum):
    MASCULINO = "Masculino"
    FEMININO = "Feminino"
    OUTRO = "Outro"


class ConsultationType(str, Enum):
    """Selects the structural template sent with a full generation."""

    SOAP = "SOAP"
    PEDIATRIC = "PEDIATRIC"
    NEURO = "NEURO"


class AppState(str, Enum):
    """Note generation state machine."""

    IDLE = "IDLE"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class PatientInfo(BaseModel):
    """Patient header of the encounter."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(default="", description="Patient name")
    age: str = Field(default="", description="Free-text age, e.g. '6 meses' or '8 anos'")
    gender: Gender = Field(default=Gender.MASCULINO)
    visit_date: date = Field(default_factory=date.today)
