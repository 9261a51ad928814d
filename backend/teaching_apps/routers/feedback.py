from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from .. import feedback
from ..gemini_client import CompletionError, GeminiClient
from .password_gate import require_access


router = APIRouter(prefix="/feedback", tags=["feedback"], dependencies=[Depends(require_access)])

logger = logging.getLogger(__name__)


def _open_client(warnings: List[str]) -> Optional[GeminiClient]:
    try:
        return GeminiClient()
    except ValueError as e:
        warnings.append(f"AI analysis unavailable: {e}")
        return None


async def _word_sentiments(client: Optional[GeminiClient], cloud: List[Dict[str, Any]], warnings: List[str]) -> Optional[Dict[str, Any]]:
    if client is None or not cloud:
        return None
    try:
        return await client.generate_structured(
            feedback.SENTIMENT_SYSTEM_PROMPT,
            feedback.build_sentiment_prompt(cloud),
            temperature=0.1,
        )
    except CompletionError as e:
        logger.warning("Word sentiment analysis failed: %s", e)
        warnings.append(f"Failed to get word sentiment analysis from AI: {e}. Word cloud colors will be default.")
        return None


async def _session_summaries(client: Optional[GeminiClient], prompt: Optional[str], warnings: List[str]) -> Optional[Dict[str, Any]]:
    if client is None or prompt is None:
        return None
    try:
        return await client.generate_structured(feedback.SUMMARY_SYSTEM_PROMPT, prompt, temperature=0.3)
    except CompletionError as e:
        logger.warning("Feedback summary failed: %s", e)
        warnings.append(f"Failed to analyze feedback using AI: {e}. Summary/categorization may be missing.")
        return None


@router.post("/process")
async def process_feedback(files: List[UploadFile] = File(default=[])):
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")

    # 1. parse and aggregate
    batch = feedback.FeedbackBatch()
    for upload in files:
        content = await upload.read()
        batch.add_file(upload.filename or "", content, upload.content_type)
    names = batch.usable_sessions()
    if not names:
        detail = "No student feedback, timing, or learning outcome data could be extracted."
        if batch.warnings:
            detail = "Failed to process files or extract data. Issues found: " + " ".join(batch.warnings)
        logger.warning("No usable feedback extracted from %d file(s)", len(files))
        raise HTTPException(status_code=400, detail=detail)

    # 2. model calls
    cloud = feedback.build_word_cloud(batch.all_comments)
    summary_prompt = feedback.build_summary_prompt(batch, names)
    client = _open_client(batch.warnings) if (cloud or summary_prompt) else None
    try:
        sentiments = await _word_sentiments(client, cloud, batch.warnings)
        analysis = await _session_summaries(client, summary_prompt, batch.warnings)
    finally:
        if client is not None:
            await client.aclose()

    # 3. merge
    result: Dict[str, Any] = {"results": feedback.merge_results(batch, names, analysis)}
    if cloud:
        result["wordCloudData"] = feedback.apply_sentiment(cloud, sentiments)
    if batch.warnings:
        result["processingWarnings"] = batch.warnings
    return result
