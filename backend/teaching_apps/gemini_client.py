from __future__ import annotations
import json
import logging
import httpx
from typing import Any, Dict, Optional
from .settings import settings

logger = logging.getLogger(__name__)


class CompletionError(RuntimeError):
	"""The model could not produce a usable completion."""


class GeminiClient:
	def __init__(self, api_key: Optional[str] = None, *, base_url: Optional[str] = None, model: Optional[str] = None) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=30)
		self._fallback_client: Optional[httpx.AsyncClient] = None
		self._fallback_enabled = bool(settings.openrouter_api_key)
		self._openrouter_api_key = settings.openrouter_api_key
		self._openrouter_model = settings.openrouter_model
		self._openrouter_base_url = settings.openrouter_base_url
		self._openrouter_headers = {
			"Authorization": f"Bearer {self._openrouter_api_key}" if self._openrouter_api_key else "",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		if self._fallback_enabled:
			self._fallback_client = httpx.AsyncClient(timeout=30)

	async def __aenter__(self) -> "GeminiClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def generate(self, prompt: str) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		messages = [{"role": "user", "content": prompt}]
		return await self._post_payload(payload, fallback_messages=messages)

	async def generate_structured(
		self,
		system: str,
		user: str,
		schema: Optional[Dict[str, Any]] = None,
		*,
		temperature: Optional[float] = None,
	) -> Dict[str, Any]:
		"""Ask for a JSON object, optionally constrained by a response schema.

		Raises CompletionError when neither the primary model nor the fallback
		returns a JSON object.
		"""
		generation_config: Dict[str, Any] = {"responseMimeType": "application/json"}
		if schema:
			generation_config["responseSchema"] = schema
		if temperature is not None:
			generation_config["temperature"] = temperature
		payload: Dict[str, Any] = {
			"systemInstruction": {"parts": [{"text": system}]},
			"contents": [{"role": "user", "parts": [{"text": user}]}],
			"generationConfig": generation_config,
		}
		fallback_system = system
		if schema:
			fallback_system = f"{system}\n\nRespond ONLY with a JSON object matching this schema:\n{json.dumps(schema)}"
		messages = [
			{"role": "system", "content": fallback_system},
			{"role": "user", "content": user},
		]
		text = await self._post_payload(payload, fallback_messages=messages, json_mode=True)
		try:
			data = json.loads(text)
		except ValueError as err:
			raise CompletionError(f"Model did not return valid JSON: {text[:200]}") from err
		if not isinstance(data, dict):
			raise CompletionError("Model returned JSON that is not an object")
		return data

	async def _post_payload(
		self,
		payload: Dict[str, Any],
		*,
		fallback_messages: Optional[list],
		json_mode: bool = False,
	) -> str:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		last_error: Optional[Exception] = None
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPError as err:
			last_error = err
		if last_error is None:
			try:
				data = r.json()
				return data["candidates"][0]["content"]["parts"][0]["text"]
			except (ValueError, KeyError, IndexError, TypeError):
				last_error = CompletionError(f"Unexpected Gemini response: {r.text}")
		logger.warning("Gemini call failed: %s", last_error)
		if not self._fallback_enabled or fallback_messages is None:
			if isinstance(last_error, CompletionError):
				raise last_error
			raise CompletionError(f"Gemini call failed: {last_error}") from last_error
		return await self._fallback_generate(fallback_messages, last_error, json_mode=json_mode)

	async def aclose(self) -> None:
		await self._client.aclose()
		if self._fallback_client is not None:
			await self._fallback_client.aclose()

	async def _fallback_generate(self, messages: list, primary_error: Optional[Exception], *, json_mode: bool = False) -> str:
		if not self._fallback_client or not self._openrouter_api_key:
			raise CompletionError("Fallback requested but OpenRouter is not configured") from primary_error
		headers = {k: v for k, v in self._openrouter_headers.items() if v}
		payload: Dict[str, Any] = {
			"model": self._openrouter_model,
			"messages": messages,
		}
		if json_mode:
			payload["response_format"] = {"type": "json_object"}
		try:
			r = await self._fallback_client.post(
				self._openrouter_base_url,
				headers=headers,
				json=payload,
			)
			r.raise_for_status()
			data = r.json()
			return data["choices"][0]["message"]["content"]
		except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as fallback_err:
			raise CompletionError(
				f"Gemini primary call failed ({primary_error}); fallback via OpenRouter also failed"
			) from fallback_err
