from math import gcd
from typing import Any, Dict, Optional

from .rest import RestProvider
from ..errors import ProviderCallError
from ..types import (
    Capability, GenerationResult, ImageRequest, ModelInfo, Usage, VideoRequest,
)

# Stable Image endpoints accept only these aspect ratios
ASPECT_RATIOS = ("16:9", "1:1", "21:9", "2:3", "3:2", "4:5", "5:4", "9:16", "9:21")

# model id -> /v2beta/stable-image/generate/<endpoint>
IMAGE_ENDPOINTS = {
    "stable-image-core": "core",
    "stable-image-ultra": "ultra",
}


def aspect_ratio(width: Optional[int], height: Optional[int]) -> Optional[str]:
    """Reduce width/height to one of the supported ratios, or None."""
    if not width or not height:
        return None
    divisor = gcd(width, height)
    ratio = f"{width // divisor}:{height // divisor}"
    return ratio if ratio in ASPECT_RATIOS else None


class StabilityProvider(RestProvider):
    """
    Provider for the Stability AI REST API (v2beta).

    Images come back synchronously. Image-to-video is asynchronous: the
    generation call returns a task id to poll with ``check_video_status``.
    """

    provider_name = "stability"
    BASE_URL = "https://api.stability.ai"
    # Billed in credits per generation, not per token
    MODELS = (
        ModelInfo(
            model="stable-image-core",
            capabilities=frozenset({Capability.IMAGE}),
            provider="stability",
        ),
        ModelInfo(
            model="stable-image-ultra",
            capabilities=frozenset({Capability.IMAGE}),
            provider="stability",
        ),
        ModelInfo(
            model="stable-video-diffusion",
            capabilities=frozenset({Capability.VIDEO}),
            provider="stability",
        ),
    )

    async def _generate_image(self, request: ImageRequest, model: str) -> GenerationResult:
        endpoint = IMAGE_ENDPOINTS.get(model, "core")
        data: Dict[str, Any] = {"prompt": request.prompt, "output_format": "png"}
        if request.negative_prompt:
            data["negative_prompt"] = request.negative_prompt
        ratio = aspect_ratio(request.width, request.height)
        if ratio:
            data["aspect_ratio"] = ratio

        # multipart/form-data is required even without a file part
        response = await self._request(
            "POST",
            f"/v2beta/stable-image/generate/{endpoint}",
            headers={"Accept": "image/*"},
            data=data,
            files={"none": ""},
        )
        usage = Usage()
        return GenerationResult(
            model=model,
            image=response.content,
            image_type=response.headers.get("content-type", "image/png"),
            usage=usage,
            cost=self.calculate_cost(model, usage.input_tokens, usage.output_tokens),
        )

    async def _generate_video(self, request: VideoRequest, model: str) -> GenerationResult:
        if request.image is None:
            raise ProviderCallError("Stability image-to-video requires an input image", status_code=400)

        extension = request.image_mime_type.split("/")[-1]
        data = {k: str(v) for k, v in request.options.items()}
        response = await self._request(
            "POST",
            "/v2beta/image-to-video",
            files={"image": (f"image.{extension}", request.image, request.image_mime_type)},
            data=data,
        )
        task_id = response.json().get("id")
        if not task_id:
            raise ProviderCallError("Stability returned no generation id")

        self.logger.info("video task started: %s", task_id)
        return GenerationResult(
            model=model,
            task_id=task_id,
            status="in_progress",
            usage=Usage(),
            cost=self.calculate_cost(model, 0, 0),
        )

    async def _check_video_status(self, task_id: str) -> GenerationResult:
        response = await self._request(
            "GET",
            f"/v2beta/image-to-video/result/{task_id}",
            headers={"Accept": "video/*"},
        )
        # 202 while the video is still rendering
        if response.status_code == 202:
            return GenerationResult(task_id=task_id, status="in_progress")
        return GenerationResult(task_id=task_id, status="completed", video=response.content)
