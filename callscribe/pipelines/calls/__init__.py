"""Call transcription pipeline package.

Modules are organised by the order in which a call is processed:

1. `ingestion` – validate and store uploaded audio.
2. `acquisition` – turn a recording reference into a readable file.
3. `orchestrator` – transcribe, persist and schedule analysis for one call.
4. `supervisor` – own the detached tasks the orchestrator spawns.
5. `flow` – human-readable description of the end-to-end stages.
"""

from .acquisition import acquire_recording, temp_recording_path
from .flow import CallPipelineMap, PipelineStage
from .ingestion import AudioValidationError, resolve_content_type, save_upload
from .orchestrator import CallPipeline, PipelineError
from .supervisor import PipelineSupervisor

__all__ = [
    "AudioValidationError",
    "CallPipeline",
    "CallPipelineMap",
    "PipelineError",
    "PipelineStage",
    "PipelineSupervisor",
    "acquire_recording",
    "resolve_content_type",
    "save_upload",
    "temp_recording_path",
]
