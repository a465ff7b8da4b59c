"""Validation of uploaded audio before it is forwarded for transcription."""

import os
import re

from loguru import logger

from .config import Config
from .exceptions import ValidationError

ALLOWED_AUDIO_EXTENSIONS = {".mp3", ".wav", ".webm", ".m4a", ".ogg", ".flac", ".mp4"}

DANGEROUS_PATTERNS = ("..", "/", "\\", "\x00", "\r", "\n")


def sanitize_filename(filename: str) -> str:
    """Reduce an upload filename to a safe basename.

    Raises:
        ValidationError: If the name is empty, hidden, too long or contains
            path or control characters
    """
    if not filename:
        raise ValidationError("Empty filename not allowed", error_code="INVALID_FILENAME")

    # Checked on the raw name: basename() would strip traversal before it is seen.
    for pattern in DANGEROUS_PATTERNS:
        if pattern in filename:
            raise ValidationError("Filename contains a forbidden pattern", error_code="INVALID_FILENAME")

    basename = os.path.basename(filename)

    if not re.match(r"^[a-zA-Z0-9._-]+$", basename):
        raise ValidationError("Filename contains invalid characters", error_code="INVALID_FILENAME")

    if basename.startswith("."):
        raise ValidationError("Hidden files not allowed", error_code="INVALID_FILENAME")

    if len(basename) > 255:
        raise ValidationError("Filename too long", error_code="INVALID_FILENAME")

    return basename


def validate_file_extension(filename: str, allowed_extensions: set = ALLOWED_AUDIO_EXTENSIONS) -> str:
    extension = os.path.splitext(filename)[1].lower()

    if not extension:
        raise ValidationError("File must have an extension", error_code="INVALID_FILE_FORMAT")

    if extension not in allowed_extensions:
        raise ValidationError(
            f"Unsupported file format: {extension}. "
            f"Allowed: {', '.join(sorted(allowed_extensions))}",
            error_code="INVALID_FILE_FORMAT"
        )

    return extension


def validate_audio_upload(filename: str, content: bytes, config: Config) -> str:
    """Check an uploaded dictation chunk and return its sanitized filename.

    Raises:
        ValidationError: If the file is empty, too large, or badly named
    """
    safe_name = sanitize_filename(filename)
    validate_file_extension(safe_name)

    if not content:
        raise ValidationError("Audio file is empty", error_code="EMPTY_FILE")

    if len(content) > config.max_upload_size:
        logger.warning(f"Rejected upload of {len(content)} bytes (limit {config.max_upload_size})")
        raise ValidationError(
            f"File too large. Maximum size: {config.max_upload_size // (1024 * 1024)}MB",
            error_code="FILE_TOO_LARGE"
        )

    return safe_name
