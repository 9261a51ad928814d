import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..gemini_client import CompletionError, GeminiClient
from ..image_client import ImageClient, ImageGenerationError
from .password_gate import require_access

router = APIRouter(prefix="/generate", tags=["generate"], dependencies=[Depends(require_access)])

logger = logging.getLogger(__name__)


class StructuredRequest(BaseModel):
	system: str
	user: str
	# JSON schema for the response (OpenAPI subset understood by Gemini)
	output_schema: Optional[Dict[str, Any]] = Field(default=None, alias="schema")
	temperature: Optional[float] = None


class ImageRequest(BaseModel):
	prompt: str
	size: str = "1024x1024"


@router.post("/structured")
async def generate_structured(req: StructuredRequest):
	if not req.user.strip():
		raise HTTPException(status_code=400, detail="user instruction is required")
	try:
		client = GeminiClient()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		data = await client.generate_structured(req.system, req.user, req.output_schema, temperature=req.temperature)
	except CompletionError as e:
		logger.exception("Structured completion failed")
		raise HTTPException(status_code=502, detail=str(e))
	finally:
		await client.aclose()
	return {"data": data}


@router.post("/image")
async def generate_image(req: ImageRequest):
	try:
		client = ImageClient()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		url = await client.generate(req.prompt, req.size)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	except ImageGenerationError as e:
		logger.exception("Image generation failed")
		raise HTTPException(status_code=502, detail=str(e))
	finally:
		await client.aclose()
	return {"url": url}
