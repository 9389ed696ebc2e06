import base64
import json
import logging
import re
from datetime import date
from typing import Optional

import google.genai as genai
from google.genai import types

from alarms.narration import Location, NarrationContext, NarrationError, Weather, greeting_prompt

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def parse_json_payload(text: Optional[str]) -> dict:
    """Decode a JSON object from a model reply, tolerating markdown fences."""
    if not text:
        raise NarrationError("Empty model response")
    cleaned = _FENCE_RE.sub("", text.strip()).strip()
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise NarrationError(f"Malformed JSON from model: {exc}") from exc
    if not isinstance(payload, dict):
        raise NarrationError("Model response is not a JSON object")
    return payload


def weather_from_payload(payload: dict) -> Weather:
    try:
        return Weather(
            temperature=float(payload["temp"]),
            condition=str(payload["condition"]),
            emoji=str(payload.get("emoji") or ""),
            location=str(payload.get("location") or ""),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise NarrationError(f"Incomplete weather payload: {payload}") from exc


class GeminiClient:
    """Greeting text, speech synthesis, weather lookup and quick-add extraction."""

    def __init__(
        self,
        api_key: str,
        text_model: str,
        tts_model: str,
        voice_name: Optional[str],
    ):
        self.client = genai.Client(api_key=api_key)
        self.text_model = text_model
        self.tts_model = tts_model
        self.voice_name = voice_name
        logger.info(
            "Gemini client ready (text=%s, tts=%s, voice=%s)",
            text_model,
            tts_model,
            voice_name or "default",
        )

    def generate_greeting(self, context: NarrationContext) -> str:
        try:
            response = self.client.models.generate_content(
                model=self.text_model,
                contents=greeting_prompt(context),
            )
        except Exception as exc:
            raise NarrationError(f"Greeting generation failed: {exc}") from exc
        text = (response.text or "").strip()
        if not text:
            logger.warning("Greeting generation returned no text")
        return text

    def synthesize_speech(self, text: str) -> bytes:
        """Return 24 kHz mono 16-bit PCM for ``text``."""
        speech_config = None
        if self.voice_name:
            speech_config = types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice_name)
                )
            )
        try:
            response = self.client.models.generate_content(
                model=self.tts_model,
                contents=text,
                config=types.GenerateContentConfig(
                    response_modalities=[types.Modality.AUDIO],
                    speech_config=speech_config,
                ),
            )
        except Exception as exc:
            raise NarrationError(f"Speech synthesis failed: {exc}") from exc
        for candidate in response.candidates or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                inline = getattr(part, "inline_data", None)
                data = getattr(inline, "data", None) if inline else None
                if data:
                    return base64.b64decode(data) if isinstance(data, str) else data
        raise NarrationError("Speech synthesis returned no audio")

    def current_conditions(self, location: Location) -> Weather:
        prompt = (
            f"Today is {date.today().isoformat()}. Use Google Search to find the current weather "
            f"for latitude {location.latitude}, longitude {location.longitude}"
            f"{f' ({location.name})' if location.name else ''}.\n"
            "Return ONLY valid JSON with properties: temp (number in Celsius), condition (string), "
            "emoji (single character weather emoji), location (city name)."
        )
        try:
            response = self.client.models.generate_content(
                model=self.text_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    tools=[types.Tool(google_search=types.GoogleSearch())],
                ),
            )
        except Exception as exc:
            raise NarrationError(f"Weather lookup failed: {exc}") from exc
        weather = weather_from_payload(parse_json_payload(response.text))
        logger.info("Weather: %s %s %.0f°C", weather.location, weather.condition, weather.temperature)
        return weather

    def extract_alarm(self, text: str, today: date) -> dict:
        prompt = (
            f"Today's date is {today.isoformat()}. User wants to add an event: \"{text}\".\n"
            "Extract: time (HH:mm format), label (brief), specific date (YYYY-MM-DD).\n"
            "Return ONLY valid JSON."
        )
        response = self.client.models.generate_content(
            model=self.text_model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=types.Schema(
                    type=types.Type.OBJECT,
                    properties={
                        "time": types.Schema(type=types.Type.STRING),
                        "label": types.Schema(type=types.Type.STRING),
                        "date": types.Schema(type=types.Type.STRING),
                    },
                    required=["time", "label", "date"],
                ),
            ),
        )
        return parse_json_payload(response.text)
