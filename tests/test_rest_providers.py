import json

import httpx
import pytest

from genmux.errors import ConfigurationError, UnsupportedCapabilityError
from genmux.providers.elevenlabs import ElevenLabsProvider
from genmux.providers.runway import RunwayProvider
from genmux.providers.stability import StabilityProvider, aspect_ratio
from genmux.types import ImageRequest, TextRequest, TTSRequest, VideoRequest


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self.responses.pop(0)

    @property
    def transport(self):
        return httpx.MockTransport(self)


# =============================================================================
# Stability
# =============================================================================

class TestStabilityProvider:

    def test_aspect_ratio(self):
        assert aspect_ratio(1024, 1024) == "1:1"
        assert aspect_ratio(1920, 1080) == "16:9"
        assert aspect_ratio(1000, 333) is None
        assert aspect_ratio(None, 1024) is None

    @pytest.mark.asyncio
    async def test_generate_image(self, settings):
        recorder = Recorder(httpx.Response(200, content=b"png bytes", headers={"content-type": "image/png"}))
        provider = StabilityProvider("sk-stability", settings=settings, transport=recorder.transport)

        result = await provider.generate_image(ImageRequest(
            prompt="barley tea", width=1024, height=1024, negative_prompt="blurry",
        ))

        assert result.ok
        assert result.image == b"png bytes"
        assert result.image_type == "image/png"
        assert result.model == "stable-image-core"
        assert result.cost.model is None

        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v2beta/stable-image/generate/core"
        assert request.headers["authorization"] == "Bearer sk-stability"
        assert request.headers["accept"] == "image/*"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.content
        assert b"barley tea" in body
        assert b"blurry" in body
        assert b"1:1" in body

    @pytest.mark.asyncio
    async def test_ultra_endpoint(self, settings):
        recorder = Recorder(httpx.Response(200, content=b"png"))
        provider = StabilityProvider("sk-stability", settings=settings, transport=recorder.transport)

        await provider.generate_image(ImageRequest(prompt="x", model="stable-image-ultra"))

        assert recorder.requests[0].url.path == "/v2beta/stable-image/generate/ultra"

    @pytest.mark.asyncio
    async def test_http_error_becomes_error_result(self, settings):
        recorder = Recorder(httpx.Response(403, json={"errors": ["content moderation"]}))
        provider = StabilityProvider("sk-stability", settings=settings, transport=recorder.transport)

        result = await provider.generate_image(ImageRequest(prompt="x"))

        assert result.error.startswith("Provider error (403)")
        assert "content moderation" in result.error
        assert result.image is None

    @pytest.mark.asyncio
    async def test_generate_video_returns_task(self, settings):
        recorder = Recorder(httpx.Response(200, json={"id": "gen_123"}))
        provider = StabilityProvider("sk-stability", settings=settings, transport=recorder.transport)

        result = await provider.generate_video(VideoRequest(image=b"img", options={"motion_bucket_id": 127}))

        assert result.task_id == "gen_123"
        assert result.status == "in_progress"
        assert result.model == "stable-video-diffusion"
        request = recorder.requests[0]
        assert request.url.path == "/v2beta/image-to-video"
        assert b"127" in request.content

    @pytest.mark.asyncio
    async def test_generate_video_requires_image(self, settings):
        recorder = Recorder()
        provider = StabilityProvider("sk-stability", settings=settings, transport=recorder.transport)

        result = await provider.generate_video(VideoRequest(prompt="x"))

        assert "requires an input image" in result.error
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_check_video_status(self, settings):
        recorder = Recorder(
            httpx.Response(202, json={"id": "gen_123", "status": "in-progress"}),
            httpx.Response(200, content=b"mp4 bytes"),
        )
        provider = StabilityProvider("sk-stability", settings=settings, transport=recorder.transport)

        pending = await provider.check_video_status("gen_123")
        done = await provider.check_video_status("gen_123")

        assert pending.status == "in_progress"
        assert pending.video is None
        assert done.status == "completed"
        assert done.video == b"mp4 bytes"
        assert recorder.requests[0].url.path == "/v2beta/image-to-video/result/gen_123"
        assert recorder.requests[0].headers["accept"] == "video/*"

    @pytest.mark.asyncio
    async def test_missing_key(self, settings):
        provider = StabilityProvider(None, settings=settings)

        result = await provider.generate_image(ImageRequest(prompt="x"))

        assert result.error.startswith("Configuration error")
        with pytest.raises(ConfigurationError):
            provider._require_client()


# =============================================================================
# Runway
# =============================================================================

class TestRunwayProvider:

    @pytest.mark.asyncio
    async def test_generate_video_with_url(self, settings):
        recorder = Recorder(httpx.Response(200, json={"id": "task_1"}))
        provider = RunwayProvider("rw-key", settings=settings, transport=recorder.transport)

        result = await provider.generate_video(VideoRequest(
            prompt="steam rises", image_url="https://example.com/tea.png", duration=10,
        ))

        assert result.task_id == "task_1"
        assert result.status == "pending"
        assert result.model == "gen4_turbo"
        request = recorder.requests[0]
        assert request.url.path == "/v1/image_to_video"
        assert request.headers["authorization"] == "Bearer rw-key"
        assert request.headers["x-runway-version"] == "2024-11-06"
        assert json.loads(request.content) == {
            "model": "gen4_turbo",
            "promptImage": "https://example.com/tea.png",
            "promptText": "steam rises",
            "ratio": "1280:720",
            "duration": 10,
        }

    @pytest.mark.asyncio
    async def test_generate_video_with_bytes_uses_data_uri(self, settings):
        recorder = Recorder(httpx.Response(200, json={"id": "task_2"}))
        provider = RunwayProvider("rw-key", settings=settings, transport=recorder.transport)

        await provider.generate_video(VideoRequest(image=b"img", image_mime_type="image/jpeg"))

        body = json.loads(recorder.requests[0].content)
        assert body["promptImage"].startswith("data:image/jpeg;base64,")

    @pytest.mark.asyncio
    async def test_generate_video_without_image(self, settings):
        provider = RunwayProvider("rw-key", settings=settings, transport=Recorder().transport)

        result = await provider.generate_video(VideoRequest(prompt="x"))

        assert "requires image" in result.error

    @pytest.mark.asyncio
    async def test_check_video_status(self, settings):
        recorder = Recorder(
            httpx.Response(200, json={"id": "task_1", "status": "RUNNING"}),
            httpx.Response(200, json={"id": "task_1", "status": "SUCCEEDED", "output": ["https://cdn/v.mp4"]}),
            httpx.Response(200, json={"id": "task_1", "status": "FAILED", "failure": "moderation"}),
        )
        provider = RunwayProvider("rw-key", settings=settings, transport=recorder.transport)

        running = await provider.check_video_status("task_1")
        done = await provider.check_video_status("task_1")
        failed = await provider.check_video_status("task_1")

        assert running.status == "in_progress"
        assert done.status == "completed"
        assert done.video == "https://cdn/v.mp4"
        assert failed.status == "failed"
        assert "moderation" in failed.error
        assert recorder.requests[0].url.path == "/v1/tasks/task_1"


# =============================================================================
# ElevenLabs
# =============================================================================

class TestElevenLabsProvider:

    def test_resolve_voice(self, settings):
        provider = ElevenLabsProvider(None, settings=settings)

        assert provider.resolve_voice(None) == "uyVNoMrnUku1dZyVEXwD"
        assert provider.resolve_voice("KKC RADIO") == "v1jVu1Ky28piIPEJqRrm"
        assert provider.resolve_voice("4JJwo477JUAx3HV0T7n7") == "4JJwo477JUAx3HV0T7n7"
        assert provider.resolve_voice("custom-voice-id") == "custom-voice-id"

    @pytest.mark.asyncio
    async def test_generate_tts(self, settings):
        recorder = Recorder(httpx.Response(200, content=b"mp3 bytes"))
        provider = ElevenLabsProvider("xi-key", settings=settings, transport=recorder.transport)

        result = await provider.generate_tts(TTSRequest(prompt="hello", voice="YohanKoo"))

        assert result.audio == b"mp3 bytes"
        assert result.audio_format == "mp3"
        assert result.model == "eleven_flash_v2"
        request = recorder.requests[0]
        assert request.url.path == "/v1/text-to-speech/4JJwo477JUAx3HV0T7n7"
        assert request.url.params["output_format"] == "mp3_44100_128"
        assert request.headers["xi-api-key"] == "xi-key"
        assert json.loads(request.content) == {"text": "hello", "model_id": "eleven_flash_v2"}

    @pytest.mark.asyncio
    async def test_list_voices(self, settings):
        voices = [{"voice_id": "a", "name": "A"}]
        recorder = Recorder(httpx.Response(200, json={"voices": voices}))
        provider = ElevenLabsProvider("xi-key", settings=settings, transport=recorder.transport)

        assert await provider.list_voices() == voices
        assert recorder.requests[0].url.path == "/v1/voices"

    @pytest.mark.asyncio
    async def test_text_is_unsupported(self, settings):
        provider = ElevenLabsProvider("xi-key", settings=settings)
        with pytest.raises(UnsupportedCapabilityError):
            await provider.generate_text(TextRequest(prompt="hi"))
