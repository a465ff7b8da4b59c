"""Structured logging configuration for the PediaNote service.

This module provides centralized logging setup with proper formatting,
log levels, and file output for production monitoring.
"""

import sys
from pathlib import Path
from typing import Optional
from loguru import logger
from .config import Config


def setup_logging(config: Config) -> None:
    """Setup structured logging with file output and console output.

    Args:
        config: Service configuration containing log level and log directory
    """
    # Remove default logger
    logger.remove()

    log_format = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
        "{level: <8} | "
        "{name}:{function}:{line} | "
        "{message}"
    )

    # Console output with colors
    logger.add(
        sys.stdout,
        level=config.log_level,
        format=log_format,
        colorize=True,
        serialize=False
    )

    logs_dir = Path(config.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    # File output for persistent logging
    logger.add(
        logs_dir / "pedianote.log",
        level=config.log_level,
        format=log_format,
        rotation="1 day",
        retention="30 days",
        compression="zip",
        serialize=False
    )

    # Error-specific log file
    logger.add(
        logs_dir / "pedianote_errors.log",
        level="ERROR",
        format=log_format,
        rotation="1 week",
        retention="60 days",
        compression="zip",
        serialize=False
    )

    logger.info(f"Logging configured with level: {config.log_level}")
    logger.info(f"Service: {config.service_name} v{config.service_version}")
    logger.debug("Debug logging enabled")


def log_ai_interaction(
    model_name: str,
    prompt_tokens: int,
    completion_tokens: int,
    duration: float,
    operation: str,
    temperature: Optional[float] = None,
    success: bool = True
) -> None:
    """Log AI model interaction for monitoring and cost tracking.

    Args:
        model_name: Name of AI model used
        prompt_tokens: Number of prompt tokens
        completion_tokens: Number of completion tokens
        duration: Interaction duration in seconds
        operation: Gateway operation name (generate_clinical_note, ...)
        temperature: Model temperature setting, if one was sent
        success: Whether interaction was successful
    """
    total_tokens = prompt_tokens + completion_tokens
    status = "SUCCESS" if success else "ERROR"

    logger.bind(
        model=model_name,
        operation=operation,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        duration=duration,
        temperature=temperature,
        status=status
    ).info(
        f"AI {status}: {operation} on {model_name} used {total_tokens} tokens in {duration:.3f}s"
    )


def log_error_with_context(
    error: Exception,
    context: dict,
    endpoint: str = "unknown"
) -> None:
    """Log error with contextual information for debugging.

    Args:
        error: Exception that occurred
        context: Additional context information (sizes and ids, never content)
        endpoint: Operation where error occurred
    """
    logger.bind(
        endpoint=endpoint,
        error_type=type(error).__name__,
        **context
    ).error(
        f"Error in {endpoint}: {str(error)}"
    )
