"""TwiML rendering for voice scripts."""

from fastapi import Response
from twilio.twiml.voice_response import VoiceResponse

from guardian_checkin.domain.scripts import InteractionScript, VoiceAlertScript

_VOICE = "alice"
_LANGUAGE = "en-US"


def twiml_response(twiml: VoiceResponse, status_code: int = 200) -> Response:
    """Wrap a TwiML document in an XML response."""
    return Response(content=str(twiml), media_type="text/xml", status_code=status_code)


def render_interaction(script: InteractionScript, action_url: str) -> VoiceResponse:
    """Greeting followed by a transcribed recording that posts back to action_url."""
    response = VoiceResponse()
    response.say(script.greeting, voice=_VOICE, language=_LANGUAGE)
    response.record(
        max_length=script.max_length_seconds,
        play_beep=script.play_beep,
        finish_on_key=script.finish_on_key,
        transcribe=script.transcribe,
        action=action_url,
    )
    return response


def render_voice_alert(script: VoiceAlertScript) -> VoiceResponse:
    """Emergency message for the primary contact, repeated once."""
    response = VoiceResponse()
    response.say(script.opening, voice=_VOICE, language=_LANGUAGE)
    response.pause(length=script.pause_seconds)
    response.say(script.closing, voice=_VOICE, language=_LANGUAGE)
    return response


def render_message(text: str) -> VoiceResponse:
    """Speak a single message."""
    response = VoiceResponse()
    response.say(text)
    return response


def render_hangup() -> VoiceResponse:
    """End the call."""
    response = VoiceResponse()
    response.hangup()
    return response
