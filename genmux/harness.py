"""
Live smoke tests: run every capability of every model of a provider (or one
kind of test across providers) and write the artifacts to disk.

Files land in ``<output_dir>/<provider>/<model>.<ext>``. Text files hold the
generated text followed by the usage and cost as JSON.
"""
import asyncio
import json
import logging
import operator
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .client import UnifiedAIClient
from .rich_printer import RichPrinter
from .types import Capability
from .utils import read_image_file

logger = logging.getLogger(__name__)

TEXT_PROMPT = (
    "Write the narration for a 30-second short video. "
    "One sentence per line, no extra commentary."
)
WEBSEARCH_PROMPT = (
    "Find one of today's news stories that would make a good short video and "
    "write a 30-second narration for it. One sentence per line, no extra commentary."
)
IMAGE_PROMPT = (
    "Roasted barley tea made from sprouted barley. "
    "Rich nutty aroma, packed in a resealable zipper pouch. Product photo."
)
TTS_PROMPT = "Hello! This is a short text-to-speech test. Have a wonderful day."
VIDEO_PROMPT = "The camera slowly pushes in while steam rises from a cup of tea."
TOOL_PROMPT = "What is 1234 multiplied by 5678? Use the calculator tool."
CONVERSATION_PROMPTS = (
    "My name is Mina and I like green tea. Please remember that.",
    "What is my name and what do I like to drink?",
)

TEST_TYPES = (
    "text", "image", "tts", "video", "stt",
    "websearch", "tool", "conversation", "conversation_state",
)

# Test type -> capability a model needs to run it
TEST_CAPABILITY = {
    "text": Capability.TEXT,
    "websearch": Capability.TEXT,
    "tool": Capability.TEXT,
    "conversation": Capability.TEXT,
    "conversation_state": Capability.TEXT,
    "image": Capability.IMAGE,
    "tts": Capability.TTS,
    "video": Capability.VIDEO,
    "stt": Capability.STT,
}

# Capability -> test run when a whole provider is tested
CAPABILITY_TEST = {
    Capability.TEXT: "text",
    Capability.IMAGE: "image",
    Capability.TTS: "tts",
    Capability.VIDEO: "video",
    Capability.STT: "stt",
}

CALCULATOR_OPERATIONS = {
    "add": operator.add,
    "subtract": operator.sub,
    "multiply": operator.mul,
    "divide": operator.truediv,
}

CALCULATOR_SCHEMA = {
    "type": "object",
    "properties": {
        "operation": {"type": "string", "enum": list(CALCULATOR_OPERATIONS)},
        "a": {"type": "number"},
        "b": {"type": "number"},
    },
    "required": ["operation", "a", "b"],
    "additionalProperties": False,
}


def calculator(arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Tool handler used by the tool test."""
    op = CALCULATOR_OPERATIONS[arguments["operation"]]
    return {"result": op(arguments["a"], arguments["b"])}


def format_text_report(envelope: Dict[str, Any]) -> str:
    usage = json.dumps(envelope.get("usage"), indent=2)
    cost = json.dumps(envelope.get("cost"), indent=2)
    return f"{envelope.get('text') or ''}\n\n{usage}\n\n{cost}"


class TestHarness:
    """
    Args:
        client: The dispatcher to exercise.
        output_dir: Root directory for artifacts.
        image_path: Input image for video tests (skipped without one).
        audio_path: Input audio for transcription. When missing, speech is
                    synthesized first and transcribed back.
        poll_interval: Seconds between video status checks.
        max_polls: Status checks before giving up on a video task.
    """

    __test__ = False

    def __init__(
        self,
        client: UnifiedAIClient,
        output_dir: str = "test_output",
        *,
        image_path: Optional[str] = None,
        audio_path: Optional[str] = None,
        printer: Optional[RichPrinter] = None,
        poll_interval: float = 10.0,
        max_polls: int = 30,
    ):
        self.client = client
        self.output_dir = Path(output_dir)
        self.image_path = image_path
        self.audio_path = audio_path
        self.printer = printer or RichPrinter()
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.failures: List[str] = []

        if "calculator" not in self.client.tools:
            self.client.register_tool(
                "calculator",
                "Perform basic arithmetic on two numbers",
                CALCULATOR_SCHEMA,
                calculator,
            )

    # ==========================================================================
    # Entry Points
    # ==========================================================================

    async def run_provider(self, provider: str) -> List[str]:
        """Test every capability of every model of one provider."""
        name, adapter = self.client.resolve_provider(provider)
        for info in adapter.models:
            for capability in sorted(info.capabilities, key=lambda c: c.value):
                await self._run_one(CAPABILITY_TEST[capability], name, info.model)
        return self.failures

    async def run(self, test_type: str, provider: Optional[str] = None) -> List[str]:
        """
        Run one kind of test on every capable model of ``provider``, or of
        every registered provider when none is given.
        """
        if test_type not in TEST_CAPABILITY:
            raise ValueError(f"Unknown test type '{test_type}'. Use one of: {', '.join(TEST_TYPES)}")

        capability = TEST_CAPABILITY[test_type]
        if provider:
            targets = [self.client.resolve_provider(provider)]
        else:
            targets = list(self.client.providers.items())

        for name, adapter in targets:
            for info in adapter.models_with(capability):
                await self._run_one(test_type, name, info.model)
        return self.failures

    async def _run_one(self, test_type: str, provider: str, model: str) -> None:
        logger.info("testing %s on %s/%s", test_type, provider, model)
        envelope = await getattr(self, f"_test_{test_type}")(provider, model)
        if envelope is None:
            return
        self.printer.print_result(envelope, title=test_type)
        if envelope.get("error"):
            self.failures.append(f"{test_type} {provider}/{model}: {envelope['error']}")

    # ==========================================================================
    # Tests
    # ==========================================================================

    async def _test_text(self, provider: str, model: str) -> Dict[str, Any]:
        envelope = await self.client.generate_text(prompt=TEXT_PROMPT, provider=provider, model=model)
        self._write_text(provider, f"{model}.txt", format_text_report(envelope))
        return envelope

    async def _test_websearch(self, provider: str, model: str) -> Dict[str, Any]:
        envelope = await self.client.generate_text(
            prompt=WEBSEARCH_PROMPT,
            provider=provider,
            model=model,
            system_tools=["web_search"],
        )
        self._write_text(provider, f"{model}.websearch.txt", format_text_report(envelope))
        return envelope

    async def _test_tool(self, provider: str, model: str) -> Dict[str, Any]:
        envelope = await self.client.generate_text(
            prompt=TOOL_PROMPT,
            provider=provider,
            model=model,
            user_tools=["calculator"],
        )
        self._write_text(provider, f"{model}.tool.txt", format_text_report(envelope))
        return envelope

    async def _test_conversation(self, provider: str, model: str) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        envelope: Dict[str, Any] = {}
        for prompt in CONVERSATION_PROMPTS:
            envelope = await self.client.generate_text(
                prompt=prompt,
                provider=provider,
                model=model,
                messages=messages,
            )
            if envelope.get("error"):
                break
            messages = envelope["messages"]

        report = format_text_report(envelope) + "\n\n" + json.dumps(messages, indent=2, ensure_ascii=False)
        self._write_text(provider, f"{model}.conversation.txt", report)
        return envelope

    async def _test_conversation_state(self, provider: str, model: str) -> Dict[str, Any]:
        response_id = None
        envelope: Dict[str, Any] = {}
        for prompt in CONVERSATION_PROMPTS:
            envelope = await self.client.generate_text(
                prompt=prompt,
                provider=provider,
                model=model,
                use_conversation_state=True,
                previous_response_id=response_id,
            )
            if envelope.get("error"):
                break
            response_id = envelope.get("response_id")

        self._write_text(provider, f"{model}.conversation_state.txt", format_text_report(envelope))
        return envelope

    async def _test_image(self, provider: str, model: str) -> Dict[str, Any]:
        envelope = await self.client.generate_image(prompt=IMAGE_PROMPT, provider=provider, model=model)
        if envelope.get("image"):
            self._write_bytes(provider, f"{model}.jpg", envelope["image"])
        return envelope

    async def _test_tts(self, provider: str, model: str) -> Dict[str, Any]:
        envelope = await self.client.generate_tts(prompt=TTS_PROMPT, provider=provider, model=model)
        if envelope.get("audio"):
            self._write_bytes(provider, f"{model}.mp3", envelope["audio"])
        return envelope

    async def _test_stt(self, provider: str, model: str) -> Optional[Dict[str, Any]]:
        if self.audio_path:
            audio = Path(self.audio_path).read_bytes()
            filename = Path(self.audio_path).name
        else:
            speech = await self.client.generate_tts(prompt=TTS_PROMPT, provider=provider)
            if speech.get("error") or not speech.get("audio"):
                logger.warning("skipping stt on %s/%s: no audio to transcribe", provider, model)
                return None
            audio, filename = speech["audio"], "speech.mp3"

        envelope = await self.client.transcribe(audio=audio, filename=filename, provider=provider, model=model)
        self._write_text(provider, f"{model}.txt", format_text_report(envelope))
        return envelope

    async def _test_video(self, provider: str, model: str) -> Optional[Dict[str, Any]]:
        if not self.image_path:
            logger.warning("skipping video on %s/%s: pass --image to test image-to-video", provider, model)
            return None

        image, mime_type = read_image_file(self.image_path)
        envelope = await self.client.generate_video(
            prompt=VIDEO_PROMPT,
            provider=provider,
            model=model,
            image=image,
            image_mime_type=mime_type,
        )
        if envelope.get("error") or not envelope.get("task_id"):
            return envelope

        status = envelope
        for _ in range(self.max_polls):
            await asyncio.sleep(self.poll_interval)
            status = await self.client.check_video_status(provider, envelope["task_id"])
            logger.info("video task %s: %s", envelope["task_id"], status.get("status"))
            if status.get("error") or status.get("status") == "completed":
                break
        else:
            status = {**status, "error": f"video task {envelope['task_id']} did not finish"}

        video = status.get("video")
        if isinstance(video, str):
            try:
                async with httpx.AsyncClient(timeout=120.0) as http:
                    response = await http.get(video)
                    response.raise_for_status()
                    video = response.content
            except httpx.HTTPError as e:
                status = {**status, "error": f"video download failed: {e}"}
                video = None
        if video:
            self._write_bytes(provider, f"{model}.mp4", video)
        return {**status, "provider": provider, "model": model}

    # ==========================================================================
    # Output
    # ==========================================================================

    def _path(self, provider: str, filename: str) -> Path:
        directory = self.output_dir / provider
        directory.mkdir(parents=True, exist_ok=True)
        return directory / filename

    def _write_text(self, provider: str, filename: str, content: str) -> None:
        path = self._path(provider, filename)
        path.write_text(content, encoding="utf-8")
        logger.info("wrote %s", path)

    def _write_bytes(self, provider: str, filename: str, content: bytes) -> None:
        path = self._path(provider, filename)
        path.write_bytes(content)
        logger.info("wrote %s", path)
