"""High-level orchestration map for the call transcription pipeline.

``CallPipeline`` in ``orchestrator.py`` holds the asynchronous choreography;
this module documents the canonical execution order so team members can
navigate the codebase more easily:

1. ``ingestion`` – validate the upload and store it (upload path only).
2. ``acquisition`` – resolve the recording reference to a readable file.
3. ``transcription`` – send the audio to Whisper through the retry policy.
4. ``persistence`` – store the transcript and mark the call complete.
5. ``analysis`` – summarise and tag the transcript in a detached task.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the call pipeline."""

    order: int
    name: str
    module: str
    summary: str
    retried: bool = False


class CallPipelineMap:
    """Utility wrapper for documenting the call pipeline flow."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Ingestion",
            "callscribe.pipelines.calls.ingestion",
            "Check the MIME type and size of an upload and save it under the upload directory.",
        ),
        PipelineStage(
            2,
            "Acquisition",
            "callscribe.pipelines.calls.acquisition",
            "Use local paths as-is; buffer remote recordings into a per-run temp file.",
        ),
        PipelineStage(
            3,
            "Transcription",
            "callscribe.services.transcribe",
            "Send the audio to Whisper and require a non-empty transcript.",
            retried=True,
        ),
        PipelineStage(
            4,
            "Persistence",
            "callscribe.services.call_repository",
            "Create the transcription, attach it to the call and mark the call complete.",
        ),
        PipelineStage(
            5,
            "Analysis",
            "callscribe.services.analysis",
            "Best-effort summary, categories and tags written onto the transcription.",
            retried=True,
        ),
    ]

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Expose the ordered list of stages for debugging and documentation."""

        return tuple(cls._STAGES)

    @classmethod
    def stage_names(cls) -> List[str]:
        return [stage.name.lower() for stage in cls._STAGES]


__all__ = ["CallPipelineMap", "PipelineStage"]
