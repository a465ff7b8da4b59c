"""In-memory encounter state.

An encounter is the working state of one clinician-patient session. The
store keeps them in process memory only; nothing is persisted.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from loguru import logger

from ..core.exceptions import EncounterNotFoundError
from ..results.models import AnalysisResult
from .models import AppState, ConsultationType, PatientInfo


class Encounter(BaseModel):
    """Mutable state of one encounter, owned by the EncounterStore.

    ``epoch`` is bumped on every reset. AI calls capture it when they are
    issued and drop their response if it changed in the meantime.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    epoch: int = 0
    patient_info: PatientInfo = Field(default_factory=PatientInfo)
    consultation_type: ConsultationType = ConsultationType.SOAP
    transcript: str = ""
    exam_input: str = ""
    app_state: AppState = AppState.IDLE
    is_parsing_exams: bool = False
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def reset(self) -> None:
        """Start a new encounter in place, keeping only id and consultation type."""
        self.epoch += 1
        self.patient_info = PatientInfo()
        self.transcript = ""
        self.exam_input = ""
        self.app_state = AppState.IDLE
        self.is_parsing_exams = False
        self.result = None
        self.error = None

    def is_busy(self) -> bool:
        return self.app_state is AppState.PROCESSING or self.is_parsing_exams

    def has_generation_input(self) -> bool:
        return bool(
            self.transcript.strip()
            or self.exam_input.strip()
            or (self.result is not None and self.result.lab_results)
        )


class EncounterStore:
    """Process-local registry of encounters.

    Encounters not touched for ``idle_timeout`` seconds are evicted the next
    time one is created. Encounters with an AI call in flight are kept.
    """

    def __init__(
        self,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._encounters: Dict[str, Encounter] = {}
        self._last_seen: Dict[str, float] = {}

    def create(self, consultation_type: ConsultationType = ConsultationType.SOAP) -> Encounter:
        self.evict_idle()
        encounter = Encounter(id=uuid.uuid4().hex, consultation_type=consultation_type)
        self._encounters[encounter.id] = encounter
        self._last_seen[encounter.id] = self.clock()
        logger.info(f"Created encounter {encounter.id}")
        return encounter

    def get(self, encounter_id: str) -> Encounter:
        encounter = self._encounters.get(encounter_id)
        if encounter is None:
            raise EncounterNotFoundError(details={"encounter_id": encounter_id})
        self._last_seen[encounter_id] = self.clock()
        return encounter

    def remove(self, encounter_id: str) -> None:
        """Discard an encounter. Responses still in flight for it are dropped.

        Raises:
            EncounterNotFoundError: If the id is unknown
        """
        encounter = self.get(encounter_id)
        # Bumping the epoch makes pending AI responses stale.
        encounter.reset()
        del self._encounters[encounter_id]
        del self._last_seen[encounter_id]
        logger.info(f"Removed encounter {encounter_id}")

    def evict_idle(self) -> int:
        """Drop idle encounters and return how many were removed."""
        if self.idle_timeout is None:
            return 0

        cutoff = self.clock() - self.idle_timeout
        expired = [
            encounter_id
            for encounter_id, seen in self._last_seen.items()
            if seen < cutoff and not self._encounters[encounter_id].is_busy()
        ]
        for encounter_id in expired:
            del self._encounters[encounter_id]
            del self._last_seen[encounter_id]

        if expired:
            logger.info(f"Evicted {len(expired)} idle encounters")
        return len(expired)

    def __len__(self) -> int:
        return len(self._encounters)
