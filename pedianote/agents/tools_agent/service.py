"""Tools Agent Service: questions, medical images, speech and transcription.

Free-form text goes through pydantic-ai agents; image, speech and
speech-to-text calls use the OpenAI SDK directly because they are not chat
completions. Every call checks the credential first and is never retried.
"""

import base64
import binascii
import time
from typing import Any, Dict, Optional, Tuple
from httpx import AsyncClient

from openai import AsyncOpenAI
from pydantic_ai import Agent, BinaryContent, ModelSettings
from pydantic_ai.models.openai import OpenAIChatModel, OpenAIChatModelSettings
from pydantic_ai.providers.openai import OpenAIProvider
from loguru import logger

from ...core.client import create_openai_client
from ...core.config import Config
from ...core.exceptions import MissingApiKeyError, ModelError, ValidationError
from ...core.logging import log_ai_interaction, log_error_with_context
from ..note_agent.service import usage_tokens
from .models import AspectRatio, ImageSize
from .prompts import QUESTION_SYSTEM_PROMPT, build_image_analysis_prompt, build_speech_text

# Raw PCM returned by the speech endpoint: 16-bit little-endian mono, no header.
SPEECH_SAMPLE_RATE = 24000

IMAGE_MIME_TYPE = "image/png"

# Image magic numbers, used to label uploads with their real media type
IMAGE_MAGIC_NUMBERS = {
    b'\x89PNG\r\n\x1a\n': 'image/png',
    b'\xFF\xD8\xFF': 'image/jpeg',
    b'GIF87a': 'image/gif',
    b'GIF89a': 'image/gif',
}

IMAGE_EXTENSIONS = {
    'image/png': 'png',
    'image/jpeg': 'jpg',
    'image/gif': 'gif',
    'image/webp': 'webp',
}


def image_dimensions(aspect_ratio: AspectRatio) -> str:
    """Map an aspect ratio onto the closest size the image model accepts."""
    if aspect_ratio is AspectRatio.SQUARE:
        return "1024x1024"
    if aspect_ratio in (AspectRatio.LANDSCAPE_WIDE, AspectRatio.LANDSCAPE):
        return "1536x1024"
    if aspect_ratio in (AspectRatio.PORTRAIT_TALL, AspectRatio.PORTRAIT):
        return "1024x1536"
    raise ValueError(f"Unknown aspect ratio: {aspect_ratio}")


def image_quality(image_size: ImageSize) -> str:
    """Map the requested resolution tier onto render quality."""
    if image_size is ImageSize.SIZE_1K:
        return "low"
    if image_size is ImageSize.SIZE_2K:
        return "medium"
    if image_size is ImageSize.SIZE_4K:
        return "high"
    raise ValueError(f"Unknown image size: {image_size}")


def decode_image(image_base64: str) -> bytes:
    try:
        return base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image must be valid base64 data")


def detect_image_type(image: bytes) -> str:
    """Return the media type of an uploaded image from its leading bytes.

    Raises:
        ValidationError: If the data is not a PNG, JPEG, GIF or WebP image
    """
    for magic, media_type in IMAGE_MAGIC_NUMBERS.items():
        if image.startswith(magic):
            return media_type
    # WebP: RIFF container with a WEBP form type
    if image[:4] == b'RIFF' and image[8:12] == b'WEBP':
        return 'image/webp'
    raise ValidationError("Unsupported image format", error_code="INVALID_IMAGE_FORMAT")


def as_data_url(b64_json: Optional[str]) -> str:
    if not b64_json:
        raise ModelError("No image generated", error_code="IMAGE_MISSING")
    return f"data:{IMAGE_MIME_TYPE};base64,{b64_json}"


class ToolsAgentService:
    """Gateway for the clinician's auxiliary AI tools."""

    def __init__(self, config: Config, http_client: AsyncClient):
        self.config = config
        self.http_client = http_client
        self._openai: Optional[AsyncOpenAI] = None
        self._agents: Dict[Tuple[str, bool], Agent] = {}

    def _client(self) -> AsyncOpenAI:
        if not self.config.openai_api_key:
            raise MissingApiKeyError()
        if self._openai is None:
            self._openai = create_openai_client(self.config, self.http_client)
        return self._openai

    def _text_agent(self, deep_reasoning: bool) -> Agent:
        """Get the plain-text agent, optionally backed by the reasoning model."""
        model_name = self.config.reasoning_model if deep_reasoning else self.config.llm_model
        key = (model_name, deep_reasoning)
        agent = self._agents.get(key)
        if agent is not None:
            return agent

        if deep_reasoning:
            # Reasoning models reject temperature; effort replaces it.
            settings = OpenAIChatModelSettings(openai_reasoning_effort="high")
        else:
            settings = ModelSettings(max_tokens=self.config.max_tokens)

        model = OpenAIChatModel(
            model_name,
            provider=OpenAIProvider(openai_client=self._client()),
            settings=settings
        )
        agent = Agent(model=model, output_type=str, system_prompt=QUESTION_SYSTEM_PROMPT)
        self._agents[key] = agent
        return agent

    async def _run_text(self, prompt: Any, deep_reasoning: bool, operation: str) -> str:
        agent = self._text_agent(deep_reasoning)
        start_time = time.time()
        try:
            result = await agent.run(prompt)
        except Exception as e:
            log_error_with_context(error=e, context={"deep_reasoning": deep_reasoning}, endpoint=operation)
            raise ModelError(f"AI model error: {str(e)}", details={"error_type": type(e).__name__})

        tokens = usage_tokens(result)
        log_ai_interaction(
            model_name=self.config.reasoning_model if deep_reasoning else self.config.llm_model,
            prompt_tokens=tokens["prompt_tokens"],
            completion_tokens=tokens["completion_tokens"],
            duration=time.time() - start_time,
            operation=operation
        )
        return result.output or ""

    async def ask_medical_question(self, query: str, deep_reasoning: bool = False) -> str:
        """Answer a free-form clinical question.

        Args:
            query: The clinician's question
            deep_reasoning: Select the higher-latency reasoning model

        Returns:
            Plain text answer (empty string when the model returns nothing)
        """
        logger.info(f"Medical question ({len(query)} chars, deep_reasoning={deep_reasoning})")
        return await self._run_text(query, deep_reasoning, "ask_medical_question")

    async def analyze_medical_image(self, image_base64: str, prompt: Optional[str] = None) -> str:
        """Describe a medical image in the pediatric context."""
        image = decode_image(image_base64)
        parts = [
            build_image_analysis_prompt(prompt),
            BinaryContent(data=image, media_type=detect_image_type(image))
        ]
        return await self._run_text(parts, False, "analyze_medical_image")

    async def generate_educational_image(
        self,
        prompt: str,
        image_size: ImageSize = ImageSize.SIZE_1K,
        aspect_ratio: AspectRatio = AspectRatio.SQUARE
    ) -> str:
        """Generate an educational illustration.

        Returns:
            ``data:image/png;base64,...`` URL

        Raises:
            ModelError: If the call fails or no image data is returned
        """
        client = self._client()
        try:
            response = await client.images.generate(
                model=self.config.image_model,
                prompt=prompt,
                size=image_dimensions(aspect_ratio),
                quality=image_quality(image_size),
                n=1
            )
        except Exception as e:
            log_error_with_context(error=e, context={"size": image_size.value}, endpoint="generate_educational_image")
            raise ModelError(f"AI model error: {str(e)}", details={"error_type": type(e).__name__})

        data = response.data[0].b64_json if response.data else None
        return as_data_url(data)

    async def edit_medical_image(self, image_base64: str, prompt: str) -> str:
        """Edit an uploaded image following the prompt."""
        image = decode_image(image_base64)
        media_type = detect_image_type(image)
        client = self._client()
        try:
            response = await client.images.edit(
                model=self.config.image_model,
                image=(f"image.{IMAGE_EXTENSIONS[media_type]}", image, media_type),
                prompt=prompt
            )
        except Exception as e:
            log_error_with_context(error=e, context={"image_bytes": len(image)}, endpoint="edit_medical_image")
            raise ModelError(f"AI model error: {str(e)}", details={"error_type": type(e).__name__})

        data = response.data[0].b64_json if response.data else None
        return as_data_url(data)

    async def generate_speech(self, text: str) -> bytes:
        """Synthesize speech for a note section.

        Returns:
            Raw 16-bit PCM at SPEECH_SAMPLE_RATE, mono, no container header
        """
        client = self._client()
        spoken = build_speech_text(text, self.config.tts_max_chars)
        try:
            response = await client.audio.speech.create(
                model=self.config.tts_model,
                voice=self.config.tts_voice,
                input=spoken,
                response_format="pcm"
            )
        except Exception as e:
            log_error_with_context(error=e, context={"text_length": len(spoken)}, endpoint="generate_speech")
            raise ModelError(f"AI model error: {str(e)}", details={"error_type": type(e).__name__})

        audio = response.content
        if not audio:
            raise ModelError("No audio generated", error_code="AUDIO_MISSING")
        logger.info(f"Synthesized {len(audio)} bytes of speech from {len(spoken)} chars")
        return audio

    async def transcribe_audio(self, audio: bytes, filename: str) -> str:
        """Transcribe a dictated audio chunk (Portuguese)."""
        client = self._client()
        try:
            response = await client.audio.transcriptions.create(
                model=self.config.transcription_model,
                file=(filename, audio),
                language="pt"
            )
        except Exception as e:
            log_error_with_context(error=e, context={"audio_bytes": len(audio)}, endpoint="transcribe_audio")
            raise ModelError(f"AI model error: {str(e)}", details={"error_type": type(e).__name__})

        return (response.text or "").strip()
