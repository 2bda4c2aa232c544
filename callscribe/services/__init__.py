"""Service layer helpers for external integrations.

``call_service`` is imported from its module directly; it depends on the
pipeline package, which in turn depends on the helpers re-exported here.
"""

from .analysis import (
    AnalysisResult,
    AnalysisService,
    AnalysisServiceError,
    get_analysis_service,
)
from .recordings import RecordingFetcher, RecordingFetchError, get_recording_fetcher
from .response_contract import AnalysisParseError, AnalysisResponse
from .retry import RetryPolicy, retryable, with_retry
from .transcribe import (
    TranscribeService,
    TranscriptionServiceError,
    TranscriptResult,
    get_transcribe_service,
)

__all__ = [
    "AnalysisParseError",
    "AnalysisResponse",
    "AnalysisResult",
    "AnalysisService",
    "AnalysisServiceError",
    "get_analysis_service",
    "RecordingFetchError",
    "RecordingFetcher",
    "get_recording_fetcher",
    "RetryPolicy",
    "retryable",
    "with_retry",
    "TranscribeService",
    "TranscriptResult",
    "TranscriptionServiceError",
    "get_transcribe_service",
]
