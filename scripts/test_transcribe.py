import asyncio
import os
import sys
from pathlib import Path

# Add project root to path so we can import callscribe
sys.path.append(os.getcwd())

from callscribe.services.analysis import AnalysisServiceError, get_analysis_service
from callscribe.services.response_contract import AnalysisParseError
from callscribe.services.transcribe import TranscriptionServiceError, get_transcribe_service


async def main():
    transcriber = get_transcribe_service()

    file_path = "out.mp3"
    if len(sys.argv) > 1:
        file_path = sys.argv[1]

    if not os.path.exists(file_path):
        print(f"File '{file_path}' not found. Please provide a path to an audio file.")
        print("Usage: python scripts/test_transcribe.py [path/to/audio.mp3] [--analyze]")
        return

    print(f"Transcribing {os.path.getsize(file_path)} bytes with Whisper...")
    try:
        result = await transcriber.transcribe(Path(file_path))
    except TranscriptionServiceError as e:
        print(f"\nTranscription Error: {e}")
        return

    print("\n--- Transcript Result ---")
    print(result.text)
    print("-------------------------")

    if "--analyze" not in sys.argv:
        return

    try:
        analysis = await get_analysis_service().analyze(result.text)
    except (AnalysisServiceError, AnalysisParseError) as e:
        print(f"\nAnalysis Error: {e}")
        return

    print("\n--- Analysis ---")
    print(f"Summary:    {analysis.summary}")
    print(f"Categories: {', '.join(analysis.categories)}")
    print(f"Tags:       {', '.join(analysis.tags)}")


if __name__ == "__main__":
    asyncio.run(main())
