from typing import Any, Dict, List, Optional

from .rest import RestProvider
from ..types import Capability, GenerationResult, ModelInfo, TTSRequest, Usage

OUTPUT_FORMAT = "mp3_44100_128"

# Voice library entries (name -> id); right click a voice > "Copy Voice ID"
VOICES = (
    {"name": "Anna Kim", "id": "uyVNoMrnUku1dZyVEXwD", "description": "Female, friendly and clear. Tutorials."},
    {"name": "KKC RADIO", "id": "v1jVu1Ky28piIPEJqRrm", "description": "Female, radio host tone."},
    {"name": "YohanKoo", "id": "4JJwo477JUAx3HV0T7n7", "description": "Calm narration."},
)


class ElevenLabsProvider(RestProvider):
    """
    Provider for ElevenLabs text-to-speech.
    """

    provider_name = "elevenlabs"
    BASE_URL = "https://api.elevenlabs.io"
    # Billed per character
    MODELS = (
        ModelInfo(
            model="eleven_flash_v2",
            capabilities=frozenset({Capability.TTS}),
            provider="elevenlabs",
            description="Fast, lower cost",
        ),
        ModelInfo(
            model="eleven_multilingual_v2",
            capabilities=frozenset({Capability.TTS}),
            provider="elevenlabs",
            description="Multilingual",
        ),
    )
    VOICES = VOICES

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"xi-api-key": api_key}

    def resolve_voice(self, voice: Optional[str]) -> str:
        """
        Map a voice name or id to a voice id.

        None selects the first known voice. Unknown values are passed through
        as ids, so any voice from the library can be used.
        """
        if voice is None:
            return self.VOICES[0]["id"]
        for entry in self.VOICES:
            if voice in (entry["name"], entry["id"]):
                return entry["id"]
        self.logger.debug("voice %s not in the table, using it as an id", voice)
        return voice

    async def _generate_tts(self, request: TTSRequest, model: str) -> GenerationResult:
        voice_id = self.resolve_voice(request.voice)
        response = await self._request(
            "POST",
            f"/v1/text-to-speech/{voice_id}",
            params={"output_format": OUTPUT_FORMAT},
            json={"text": request.prompt, "model_id": model},
        )
        usage = Usage()
        return GenerationResult(
            model=model,
            audio=response.content,
            audio_format="mp3",
            usage=usage,
            cost=self.calculate_cost(model, usage.input_tokens, usage.output_tokens),
        )

    async def list_voices(self) -> List[Dict[str, Any]]:
        """
        Fetch the voices available to the account.

        Raises:
            ProviderCallError: If the request fails.
            ConfigurationError: If no API key is configured.
        """
        response = await self._request("GET", "/v1/voices")
        return response.json().get("voices", [])
