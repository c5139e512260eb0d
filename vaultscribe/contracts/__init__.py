from .artifacts import (
    Chunk,
    FileKind,
    PipelineOptions,
    ProcessResult,
    Segment,
    SummarizationResult,
    TranscriptionResult,
)
from .errors import (
    ChunkingError,
    ChunkOperationFailedError,
    ComponentError,
    ConfigurationError,
    DecryptionFailedError,
    ExternalToolUnavailableError,
    FfmpegError,
    InputTypeMismatchError,
    InputValidationError,
    InvalidDataError,
    InvalidPINError,
    IOFailureError,
    KeyGenerationError,
    MissingCapabilityError,
    OperationCancelledError,
    PipelineError,
    ProviderResponseError,
    SummarizationError,
    TranscriptionError,
    UnsupportedProviderError,
    VaultError,
)
from .run_record import RunRecord, StepRecord

__all__ = [
    "Chunk",
    "FileKind",
    "PipelineOptions",
    "ProcessResult",
    "Segment",
    "SummarizationResult",
    "TranscriptionResult",
    "RunRecord",
    "StepRecord",
    "PipelineError",
    "ComponentError",
    "VaultError",
    "InvalidPINError",
    "InvalidDataError",
    "DecryptionFailedError",
    "KeyGenerationError",
    "ConfigurationError",
    "UnsupportedProviderError",
    "MissingCapabilityError",
    "ExternalToolUnavailableError",
    "InputValidationError",
    "InputTypeMismatchError",
    "FfmpegError",
    "ChunkingError",
    "ChunkOperationFailedError",
    "TranscriptionError",
    "SummarizationError",
    "ProviderResponseError",
    "IOFailureError",
    "OperationCancelledError",
]
