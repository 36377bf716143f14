"""Replicate image generation service."""

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Optional

from ..exceptions import ModelInputError, TransientBackendError
from ..models.model_profile import ModelProfile

logger = logging.getLogger(__name__)


@dataclass
class BackendResult:
    """Result from one image backend call."""

    image_url: str
    model: str
    generation_time: float
    seed: Optional[int] = None


class ReplicateService:
    """Service for text-to-image and inpainting calls on Replicate.

    Every HTTP request made by the client is bounded by ``timeout``.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        timeout: float = 60.0,
    ):
        """
        Initialize Replicate service.

        Args:
            api_token: Replicate API token (or set REPLICATE_API_TOKEN env var)
            timeout: Per-request timeout in seconds
        """
        self.api_token = api_token or os.environ.get("REPLICATE_API_TOKEN")
        self.timeout = timeout
        self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    @property
    def client(self):
        """Lazy initialization of the Replicate client."""
        if self._client is None:
            import httpx
            import replicate

            self._client = replicate.Client(
                api_token=self.api_token,
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    def build_input(
        self,
        profile: ModelProfile,
        prompt: str,
        width: int,
        height: int,
        steps: Optional[int] = None,
        image: Optional[str] = None,
        mask: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Shape the model input payload.

        ``image`` and ``mask`` are only sent to profiles that support
        inpainting; outpainting-only profiles require both.
        """
        if profile.supports_outpainting and not profile.supports_text_to_image:
            if not image or not mask:
                raise ModelInputError(
                    f"Model {profile.id} requires image and mask input", model=profile.id
                )

        payload: dict[str, Any] = {
            "prompt": prompt,
            "width": width,
            "height": height,
            "num_inference_steps": steps or profile.steps,
            "guidance_scale": profile.guidance_scale,
            "num_outputs": 1,
        }
        if seed is not None:
            payload["seed"] = seed

        if profile.supports_outpainting and image and mask:
            payload["image"] = image
            payload["mask"] = mask

        return payload

    def generate(
        self,
        profile: ModelProfile,
        prompt: str,
        width: int,
        height: int,
        steps: Optional[int] = None,
        image: Optional[str] = None,
        mask: Optional[str] = None,
        seed: Optional[int] = None,
    ) -> BackendResult:
        """
        Run a model and return the first output image.

        Args:
            profile: Model profile to run
            prompt: Final prompt text
            width: Output width
            height: Output height
            steps: Override for the profile's inference steps
            image: Canvas data URL (inpainting profiles only)
            mask: Mask data URL (inpainting profiles only)
            seed: Optional seed

        Returns:
            BackendResult with the image URL

        Raises:
            ModelInputError: If the profile needs an image and mask that were not given
            TransientBackendError: On any vendor failure or empty output
        """
        payload = self.build_input(profile, prompt, width, height, steps, image, mask, seed)
        mode = "inpaint" if "mask" in payload else "text-to-image"
        logger.info(
            "Running %s (%s, %d steps, guidance %.1f)",
            profile.name,
            mode,
            payload["num_inference_steps"],
            payload["guidance_scale"],
        )

        start_time = time.time()
        try:
            output = self.client.run(profile.name, input=payload)
        except Exception as e:
            raise TransientBackendError(
                f"{profile.name} failed: {e}", model=profile.id
            ) from e

        generation_time = time.time() - start_time

        image_url = self._extract_image_url(output)
        if not image_url:
            raise TransientBackendError(
                f"{profile.name} returned no image (output type: {type(output).__name__})",
                model=profile.id,
            )

        logger.info("%s finished in %.2fs", profile.name, generation_time)
        return BackendResult(
            image_url=image_url,
            model=profile.id,
            generation_time=generation_time,
            seed=seed,
        )

    def _extract_image_url(self, output: Any) -> Optional[str]:
        """Normalise model output to a single URL string.

        Models return a URL, a list of URLs, or file objects exposing
        ``url`` depending on the client version.
        """
        if isinstance(output, (list, tuple)):
            if not output:
                return None
            output = output[0]

        if output is None:
            return None

        url = getattr(output, "url", None)
        if callable(url):
            url = url()
        if url:
            return str(url)

        value = str(output)
        return value or None
