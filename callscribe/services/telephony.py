"""TwiML documents returned to the Twilio voice webhook."""

from __future__ import annotations

from twilio.twiml.voice_response import VoiceResponse

from callscribe.config.settings import settings

RECORDING_STATUS_PATH = "/api/calls/recording-status"


def generate_voice_response(action: str = RECORDING_STATUS_PATH) -> VoiceResponse:
    """Greet the caller, record a message and post the result to ``action``."""

    response = VoiceResponse()
    response.say(settings.twilio.greeting, voice="alice", language="en-US")
    # Twilio's own transcription stays off; Whisper handles it.
    response.record(
        action=action,
        max_length=settings.twilio.max_recording_seconds,
        transcribe=False,
        play_beep=True,
        timeout=5,
    )
    response.say(settings.twilio.farewell, voice="alice", language="en-US")
    return response


def farewell_response() -> VoiceResponse:
    """Close the call once Twilio has posted the recording to the action URL."""

    response = VoiceResponse()
    response.say(settings.twilio.farewell, voice="alice", language="en-US")
    response.hangup()
    return response


__all__ = ["RECORDING_STATUS_PATH", "farewell_response", "generate_voice_response"]
