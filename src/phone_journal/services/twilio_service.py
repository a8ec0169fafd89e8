"""Twilio helpers.

TwiML documents returned to Twilio Voice:
- the call-setup script (say a prompt, then record)
- the reject directive for callers that are not allow-listed
"""

from twilio.twiml.voice_response import VoiceResponse

RECORD_PROMPT = "What's on your mind? This call is recorded."


def build_record_twiml(recording_callback_url: str) -> str:
    """Speak the prompt, then record and POST completion to our callback."""
    response = VoiceResponse()
    response.say(RECORD_PROMPT)
    response.record(recording_status_callback=recording_callback_url)
    return str(response)


def build_reject_twiml() -> str:
    response = VoiceResponse()
    response.reject()
    return str(response)
