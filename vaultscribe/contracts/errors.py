from __future__ import annotations

from pathlib import Path
from typing import Any


class PipelineError(Exception):
    """Raised by the pipeline entrypoint for user-facing failures."""

    steps: dict[str, Any] | None = None


class ComponentError(Exception):
    """Base exception for component-level failures."""

    steps: dict[str, Any] | None = None


class VaultError(ComponentError):
    """Base exception for credential vault failures."""


class InvalidPINError(VaultError):
    """Raised when a PIN is not exactly four decimal digits."""

    def __init__(self, message: str = "PIN must be exactly 4 digits") -> None:
        super().__init__(message)


class InvalidDataError(VaultError):
    """Raised when an encrypted secret is not a well-formed envelope."""

    def __init__(self, message: str = "invalid encrypted data format") -> None:
        super().__init__(message)


class DecryptionFailedError(VaultError):
    """Raised for a wrong PIN and for corrupted data alike."""

    def __init__(self, message: str = "decryption failed: wrong PIN or corrupted data") -> None:
        super().__init__(message)


class KeyGenerationError(VaultError):
    """Raised when the secure random source is unavailable."""


class ConfigurationError(ComponentError):
    """Raised when a requested operation is not configured."""


class UnsupportedProviderError(ConfigurationError):
    """Raised by the provider factory for unknown provider identifiers."""


class MissingCapabilityError(ConfigurationError):
    """Raised when an operation is requested but no capability backs it."""


class InputValidationError(ComponentError):
    """Raised when an input path or config is invalid."""


class InputTypeMismatchError(InputValidationError):
    """Raised when the requested operations do not fit the input file type."""

    def __init__(self, message: str, *, kind: str) -> None:
        super().__init__(message)
        self.kind = kind


class FfmpegError(ComponentError):
    """Raised when ffmpeg/ffprobe operations fail."""


class ExternalToolUnavailableError(ConfigurationError, FfmpegError):
    """Raised when ffmpeg/ffprobe cannot be found on the host."""


class ChunkingError(ComponentError):
    """Raised when chunking fails or produces invalid outputs."""


class ChunkOperationFailedError(ChunkingError):
    """Raised when transcribing one chunk fails; the cause is the chunk's error."""

    def __init__(self, message: str, *, chunk_index: int, chunk_path: Path | None = None) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index
        self.chunk_path = chunk_path


class TranscriptionError(ComponentError):
    """Raised when transcription provider calls fail."""


class SummarizationError(ComponentError):
    """Raised when summarization provider calls fail."""


class ProviderResponseError(ComponentError):
    """Raised when a provider returns an unexpected response shape."""


class IOFailureError(ComponentError):
    """Raised when a source or artifact file cannot be read or written."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class OperationCancelledError(ComponentError):
    """Raised when the caller's cancellation token is set."""
