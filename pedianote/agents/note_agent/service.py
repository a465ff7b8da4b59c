"""Note Agent Service: full note generation and lab-only extraction.

This service sends the composed prompts to the AI model and validates the
JSON it returns against the AnalysisResult / LabExtraction schemas. A
response that does not match the schema fails the call; nothing is retried.
"""

import time
from typing import Any, Dict, List, Type
from httpx import AsyncClient

from pydantic_ai import Agent, ModelSettings, NativeOutput
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from loguru import logger

from ...core.client import create_openai_client
from ...core.config import SERVICE_START_TIME, Config
from ...core.exceptions import (
    LabExtractionError,
    MissingApiKeyError,
    ModelError,
    NoteGenerationError,
)
from ...core.logging import log_ai_interaction, log_error_with_context
from ...encounters.models import ConsultationType, PatientInfo
from ...results.models import AnalysisResult, LabExtraction, LabItem
from .prompts import PromptPayload, build_lab_only_prompt, build_prompt

SYSTEM_PROMPT = (
    "Você é um assistente de documentação clínica pediátrica no Brasil. "
    "Responda sempre em português do Brasil e apenas com o JSON solicitado."
)


def usage_tokens(result: Any) -> Dict[str, int]:
    """Read token counts from an agent run, tolerating missing usage data."""
    usage = result.usage() if callable(getattr(result, "usage", None)) else None
    if usage is None:
        return {"prompt_tokens": 0, "completion_tokens": 0}
    return {
        "prompt_tokens": getattr(usage, "input_tokens", 0) or 0,
        "completion_tokens": getattr(usage, "output_tokens", 0) or 0,
    }


class NoteAgentService:
    """Gateway for clinical note generation and lab extraction."""

    def __init__(self, config: Config, http_client: AsyncClient):
        """Initialize note agent service.

        Args:
            config: Service configuration
            http_client: Shared HTTP client
        """
        self.config = config
        self.http_client = http_client
        self._agents: Dict[type, Agent] = {}

    def _get_agent(self, output_type: Type) -> Agent:
        """Get or create the agent producing ``output_type``.

        Raises:
            MissingApiKeyError: If no API key is configured
            ModelError: If the model cannot be initialized
        """
        if not self.config.openai_api_key:
            raise MissingApiKeyError()

        agent = self._agents.get(output_type)
        if agent is not None:
            return agent

        try:
            model = OpenAIChatModel(
                self.config.llm_model,
                provider=OpenAIProvider(
                    openai_client=create_openai_client(self.config, self.http_client)
                ),
                settings=ModelSettings(max_tokens=self.config.max_tokens)
            )
            agent = Agent(
                model=model,
                output_type=NativeOutput(output_type),
                system_prompt=SYSTEM_PROMPT,
                retries=0
            )
        except Exception as e:
            logger.error(f"Failed to initialize agent: {e}")
            raise ModelError(
                f"Failed to initialize AI model: {str(e)}",
                details={"model": self.config.llm_model}
            )

        logger.info(f"Agent for {output_type.__name__} initialized with model {self.config.llm_model}")
        self._agents[output_type] = agent
        return agent

    async def _run(self, output_type: Type, payload: PromptPayload, operation: str) -> Any:
        agent = self._get_agent(output_type)
        start_time = time.time()

        result = await agent.run(
            payload.prompt,
            model_settings=ModelSettings(temperature=payload.temperature)
        )

        duration = time.time() - start_time
        tokens = usage_tokens(result)
        log_ai_interaction(
            model_name=self.config.llm_model,
            prompt_tokens=tokens["prompt_tokens"],
            completion_tokens=tokens["completion_tokens"],
            duration=duration,
            temperature=payload.temperature,
            operation=operation,
            success=True
        )
        return result.output

    async def generate_clinical_note(
        self,
        transcript: str,
        exam_text: str,
        patient_info: PatientInfo,
        consultation_type: ConsultationType
    ) -> AnalysisResult:
        """Generate note, labs, ICD codes and instructions in one call.

        Args:
            transcript: Raw consultation transcript
            exam_text: Raw lab-exam text or dictation
            patient_info: Patient header
            consultation_type: Template selector

        Returns:
            Validated analysis result

        Raises:
            MissingApiKeyError: If no API key is configured
            NoteGenerationError: If the call fails or the response is malformed
        """
        payload = build_prompt(
            transcript,
            exam_text,
            patient_info,
            consultation_type,
            temperature=self.config.note_temperature
        )
        logger.info(
            f"Generating {consultation_type.value} note from {len(transcript)} transcript "
            f"and {len(exam_text)} exam characters"
        )

        try:
            return await self._run(AnalysisResult, payload, "generate_clinical_note")
        except (MissingApiKeyError, ModelError):
            raise
        except Exception as e:
            log_error_with_context(
                error=e,
                context={
                    "transcript_length": len(transcript),
                    "exam_length": len(exam_text),
                    "model": self.config.llm_model
                },
                endpoint="generate_clinical_note"
            )
            raise NoteGenerationError(
                f"AI model error: {str(e)}",
                details={"model": self.config.llm_model, "error_type": type(e).__name__}
            )

    async def parse_lab_exams(self, exam_text: str, patient_age: str) -> List[LabItem]:
        """Extract only structured lab rows from free text.

        Blank input returns an empty list without calling the model.

        Raises:
            MissingApiKeyError: If no API key is configured
            LabExtractionError: If the call fails or the response is malformed
        """
        if not self.config.openai_api_key:
            raise MissingApiKeyError()
        if not exam_text.strip():
            return []

        payload = build_lab_only_prompt(
            exam_text,
            patient_age,
            temperature=self.config.lab_temperature
        )

        try:
            extraction: LabExtraction = await self._run(LabExtraction, payload, "parse_lab_exams")
        except (MissingApiKeyError, ModelError):
            raise
        except Exception as e:
            log_error_with_context(
                error=e,
                context={"exam_length": len(exam_text), "model": self.config.llm_model},
                endpoint="parse_lab_exams"
            )
            raise LabExtractionError(
                f"AI model error: {str(e)}",
                details={"model": self.config.llm_model, "error_type": type(e).__name__}
            )

        logger.info(f"Extracted {len(extraction.results)} lab rows")
        return list(extraction.results)

    def get_service_status(self) -> Dict[str, Any]:
        """Get service status information."""
        uptime = time.time() - SERVICE_START_TIME

        return {
            "status": "healthy",
            "api_key_configured": bool(self.config.openai_api_key),
            "uptime": round(uptime, 2),
            "config": {
                "model": self.config.llm_model,
                "note_temperature": self.config.note_temperature,
                "lab_temperature": self.config.lab_temperature,
                "max_tokens": self.config.max_tokens
            }
        }
