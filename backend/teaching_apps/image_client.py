from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional
from .settings import settings

logger = logging.getLogger(__name__)

ALLOWED_SIZES = ("256x256", "512x512", "1024x1024", "1792x1024", "1024x1792")


class ImageGenerationError(RuntimeError):
	"""The image provider failed or returned no URL."""


class ImageClient:
	def __init__(self, api_key: Optional[str] = None, *, base_url: Optional[str] = None, model: Optional[str] = None) -> None:
		self.api_key = api_key or settings.image_api_key
		if not self.api_key:
			raise ValueError("IMAGE_API_KEY is not configured")
		self.base_url = base_url or settings.image_api_base_url
		self.model = model or settings.image_model
		self._client = httpx.AsyncClient(timeout=30)

	async def __aenter__(self) -> "ImageClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def generate(self, prompt: str, size: str = "1024x1024") -> str:
		prompt = (prompt or "").strip()
		if not prompt:
			raise ValueError("prompt is required")
		if size not in ALLOWED_SIZES:
			raise ValueError(f"size must be one of {', '.join(ALLOWED_SIZES)}")
		payload: Dict[str, Any] = {"model": self.model, "prompt": prompt, "n": 1, "size": size}
		headers = {"Authorization": f"Bearer {self.api_key}"}
		try:
			r = await self._client.post(self.base_url, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPError as err:
			logger.warning("Image generation failed: %s", err)
			raise ImageGenerationError(f"Image generation failed: {err}") from err
		try:
			url = r.json()["data"][0]["url"]
		except (ValueError, KeyError, IndexError, TypeError) as err:
			raise ImageGenerationError(f"Unexpected image response: {r.text}") from err
		if not url:
			raise ImageGenerationError("Image provider returned an empty URL")
		return url

	async def aclose(self) -> None:
		await self._client.aclose()
