"""Domain layer: errors, schemas, constants."""

from .errors import (
    ConversionError,
    DatasetError,
    ErrorCodes,
    GenerationError,
    PackagingError,
    PipelineError,
    RenderError,
    SessionError,
    StorageError,
    TemplateIssue,
    TemplateParseError,
    UploadError,
)
from .schemas import (
    ArchiveResult,
    ConversionBatchResult,
    ConversionFailure,
    GeneratedArtifact,
    GenerationResult,
    RunLog,
    SessionRecord,
    TabularDataset,
    ValidationResult,
)

__all__ = [
    # errors
    "PipelineError",
    "ErrorCodes",
    "TemplateIssue",
    "TemplateParseError",
    "RenderError",
    "ConversionError",
    "PackagingError",
    "GenerationError",
    "DatasetError",
    "StorageError",
    "SessionError",
    "UploadError",
    # schemas
    "TabularDataset",
    "ValidationResult",
    "GeneratedArtifact",
    "GenerationResult",
    "ConversionFailure",
    "ConversionBatchResult",
    "ArchiveResult",
    "SessionRecord",
    "RunLog",
]
