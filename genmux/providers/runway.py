from typing import Dict

from .rest import RestProvider
from ..errors import ProviderCallError
from ..types import Capability, GenerationResult, ModelInfo, Usage, VideoRequest
from ..utils import to_data_uri

API_VERSION = "2024-11-06"

# Runway task status -> normalized status
TASK_STATUS = {
    "PENDING": "pending",
    "THROTTLED": "pending",
    "RUNNING": "in_progress",
    "SUCCEEDED": "completed",
    "FAILED": "failed",
    "CANCELLED": "failed",
}


class RunwayProvider(RestProvider):
    """
    Provider for Runway image-to-video generation.

    Generation returns a task id; ``check_video_status`` reports progress and,
    once done, the URL of the rendered video.
    """

    provider_name = "runway"
    BASE_URL = "https://api.dev.runwayml.com"
    MODELS = (
        ModelInfo(
            model="gen4_turbo",
            capabilities=frozenset({Capability.VIDEO}),
            provider="runway",
        ),
        ModelInfo(
            model="gen3a_turbo",
            capabilities=frozenset({Capability.VIDEO}),
            provider="runway",
        ),
    )

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "X-Runway-Version": API_VERSION,
        }

    async def _generate_video(self, request: VideoRequest, model: str) -> GenerationResult:
        if request.image_url:
            prompt_image = request.image_url
        elif request.image is not None:
            prompt_image = to_data_uri(request.image, request.image_mime_type)
        else:
            raise ProviderCallError("Runway image-to-video requires image or image_url", status_code=400)

        body = {
            "model": model,
            "promptImage": prompt_image,
            "promptText": request.prompt,
            "ratio": request.ratio,
            "duration": request.duration,
        }
        body.update(request.options)

        response = await self._request("POST", "/v1/image_to_video", json=body)
        task_id = response.json().get("id")
        if not task_id:
            raise ProviderCallError("Runway returned no task id")

        self.logger.info("video task started: %s", task_id)
        return GenerationResult(
            model=model,
            task_id=task_id,
            status="pending",
            usage=Usage(),
            cost=self.calculate_cost(model, 0, 0),
        )

    async def _check_video_status(self, task_id: str) -> GenerationResult:
        response = await self._request("GET", f"/v1/tasks/{task_id}")
        task = response.json()
        raw_status = task.get("status", "")
        status = TASK_STATUS.get(raw_status, raw_status.lower())

        if status == "failed":
            reason = task.get("failure") or raw_status
            return GenerationResult(task_id=task_id, status=status, error=f"Runway task failed: {reason}")

        video = None
        if status == "completed" and task.get("output"):
            video = task["output"][0]
        return GenerationResult(task_id=task_id, status=status, video=video)
