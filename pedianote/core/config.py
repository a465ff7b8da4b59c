"""Configuration management for the PediaNote service.

This module provides centralized configuration with validation,
environment variable support, and sensible defaults.
"""

import os
import time
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
from loguru import logger

# Load environment variables
load_dotenv()


class Config(BaseModel):
    """Configuration class for the PediaNote service.

    All configuration values can be overridden via environment variables.
    """

    # AI Model Configuration
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (read from OPENAI_API_KEY)"
    )
    llm_model: str = Field(
        default="gpt-4o",
        description="Model used for note generation, lab extraction and quick questions"
    )
    reasoning_model: str = Field(
        default="o3",
        description="Model used when deep reasoning is requested"
    )
    image_model: str = Field(
        default="gpt-image-1",
        description="Model used for educational image generation and edits"
    )
    tts_model: str = Field(
        default="gpt-4o-mini-tts",
        description="Model used for speech synthesis"
    )
    tts_voice: str = Field(
        default="coral",
        description="Prebuilt voice for speech synthesis"
    )
    transcription_model: str = Field(
        default="whisper-1",
        description="Model used for speech-to-text of dictated segments"
    )
    realtime_model: str = Field(
        default="gpt-realtime",
        description="Model used for the realtime audio session"
    )
    note_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Temperature for full note generation"
    )
    lab_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Temperature for lab-only extraction"
    )
    max_tokens: int = Field(
        default=4000,
        gt=0,
        le=16000,
        description="Maximum tokens for AI response"
    )
    request_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Read timeout in seconds for AI calls"
    )

    # Output Configuration
    tts_max_chars: int = Field(
        default=1500,
        gt=0,
        description="Text sent to speech synthesis is truncated to this length"
    )
    print_settle_delay_ms: int = Field(
        default=500,
        ge=0,
        description="Delay before the print dialog is opened on the print page"
    )
    max_upload_size: int = Field(
        default=26214400,  # 25MB
        gt=0,
        description="Maximum size in bytes of an uploaded dictation chunk"
    )

    encounter_idle_timeout: float = Field(
        default=14400.0,  # 4h
        gt=0,
        description="Seconds after which an untouched encounter is evicted from memory"
    )

    # Service Configuration
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the service to"
    )
    port: int = Field(
        default=8001,
        gt=0,
        le=65535,
        description="Port to bind the service to"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_dir: str = Field(
        default="logs",
        description="Directory for rotating log files"
    )

    # Health Check Configuration
    service_name: str = Field(
        default="pedianote",
        description="Name of the service for health checks"
    )
    service_version: str = Field(
        default="1.0.0",
        description="Version of the service"
    )

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", "gpt-4o"),
            reasoning_model=os.getenv("REASONING_MODEL", "o3"),
            image_model=os.getenv("IMAGE_MODEL", "gpt-image-1"),
            tts_model=os.getenv("TTS_MODEL", "gpt-4o-mini-tts"),
            tts_voice=os.getenv("TTS_VOICE", "coral"),
            transcription_model=os.getenv("TRANSCRIPTION_MODEL", "whisper-1"),
            realtime_model=os.getenv("REALTIME_MODEL", "gpt-realtime"),
            note_temperature=float(os.getenv("NOTE_TEMPERATURE", "0.2")),
            lab_temperature=float(os.getenv("LAB_TEMPERATURE", "0.1")),
            max_tokens=int(os.getenv("MAX_TOKENS", "4000")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "120")),
            tts_max_chars=int(os.getenv("TTS_MAX_CHARS", "1500")),
            print_settle_delay_ms=int(os.getenv("PRINT_SETTLE_DELAY_MS", "500")),
            max_upload_size=int(os.getenv("MAX_FILE_SIZE", "26214400")),
            encounter_idle_timeout=float(os.getenv("ENCOUNTER_IDLE_TIMEOUT", "14400")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8001")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR", "logs"),
            service_name=os.getenv("SERVICE_NAME", "pedianote"),
            service_version=os.getenv("SERVICE_VERSION", "1.0.0")
        )

    def validate_config(self) -> None:
        """Validate configuration and raise errors for invalid settings."""
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY environment variable is required")

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR"]:
            raise ValueError(f"Invalid log level: {self.log_level}")


# Track service start time for uptime calculation
SERVICE_START_TIME = time.time()

# Global configuration instance
config = Config.from_env()

# The service still starts without a key; AI calls fail with "API Key is missing".
try:
    config.validate_config()
except ValueError as e:
    logger.warning(f"Configuration error: {e}")
