"""
Scoring oracle client.

The oracle is a free-text generator: it receives a prompt (plus an optional
file) and returns prose. Callers impose structure through the prompt and
read it back with ``exam_grader.services.grammar``.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from exam_grader.core.config import DEFAULT_ORACLE_MODEL
from exam_grader.core.errors import OracleRefusal, OracleUnavailable

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "temperature": 0.2,
    "top_p": 0.95,
    "top_k": 64,
    "max_output_tokens": 8192,
    "response_mime_type": "text/plain",
}

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
}


@dataclass(frozen=True)
class OracleFile:
    data: bytes
    mime_type: str
    file_name: Optional[str] = None


class ScoringOracle(Protocol):
    def generate(
        self,
        prompt: str,
        file: Optional[OracleFile] = None,
        model_id: Optional[str] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        ...


def _is_blocked(response) -> bool:
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", 0):
        return True
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return True
    finish_reason = getattr(candidates[0], "finish_reason", None)
    return getattr(finish_reason, "name", "") == "SAFETY"


class GeminiOracle:
    """
    Stateless single-turn client on the google-generativeai SDK.

    Failures are not retried here; callers retry the whole grading request.
    """

    def __init__(self, api_key: Optional[str] = None, default_model: str = DEFAULT_ORACLE_MODEL):
        if api_key:
            genai.configure(api_key=api_key)
        else:
            logger.warning("No GEMINI_API_KEY configured - oracle grading will fail")
        self._default_model = default_model

    def generate(
        self,
        prompt: str,
        file: Optional[OracleFile] = None,
        model_id: Optional[str] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        model_name = model_id or self._default_model
        model = genai.GenerativeModel(
            model_name=model_name,
            generation_config=GENERATION_CONFIG,
            safety_settings=SAFETY_SETTINGS,
            system_instruction=system_prompt or None,
        )

        parts: list = [prompt]
        if file is not None:
            parts.append({"mime_type": file.mime_type, "data": file.data})

        try:
            response = model.generate_content(parts)
        except Exception as exc:
            logger.exception("Oracle call to %s failed", model_name)
            raise OracleUnavailable(f"Scoring service unavailable: {exc}") from exc

        if _is_blocked(response):
            logger.warning("Oracle %s refused to grade (safety)", model_name)
            raise OracleRefusal("Scoring service refused the content under its safety policy")

        try:
            return response.text
        except ValueError as exc:
            # .text raises when the candidate carries no text parts
            raise OracleRefusal("Scoring service returned no gradable text") from exc
