"""
Gemini Integration Service
Handles communication with Google Gemini API for budget insights and savings plans
"""
import json
import logging
import os
import re
from typing import Any, Dict, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from google.generativeai.types import HarmCategory, HarmBlockThreshold
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?|```")


class InsightGenerationError(Exception):
    """A single call to the insight generator failed.

    ``status_code`` carries the HTTP-style status reported by the remote
    service when there is one; ``None`` means a transport-level failure.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InsightResponseError(InsightGenerationError):
    """The model answered, but not with the JSON shape that was asked for."""


def extract_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object out of raw model text.

    Markdown fences are stripped first; if the remainder still does not parse,
    the outermost ``{...}`` block is tried.

    Raises:
        InsightResponseError: If no JSON object can be recovered
    """
    cleaned = _FENCE_PATTERN.sub("", text or "").strip()
    if not cleaned:
        raise InsightResponseError("Empty response from Gemini")

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", cleaned)
        if not match:
            raise InsightResponseError(f"Gemini response did not contain JSON object: {cleaned[:200]}")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as err:
            raise InsightResponseError(f"Gemini response contained malformed JSON: {err}") from err

    if not isinstance(parsed, dict):
        raise InsightResponseError("Gemini response JSON is not an object")
    return parsed


class GeminiService:
    """Service for asking Gemini for structured (JSON) financial advice"""

    def __init__(self):
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ValueError("GEMINI_API_KEY environment variable is required")

        genai.configure(api_key=api_key)

        self.model_name = os.getenv("GEMINI_MODEL", "gemini-1.5-pro")
        self.generation_config = {
            "max_output_tokens": 2000,
            "temperature": 0.7,
            "top_p": 0.95,
            "top_k": 40,
            "response_mime_type": "application/json",
        }

        # Safety settings
        self.safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
        }

        try:
            self.model = genai.GenerativeModel(
                model_name=self.model_name,
                safety_settings=self.safety_settings,
                generation_config=self.generation_config,
            )
            logger.info(f"Initialized Gemini model: {self.model_name}")
        except Exception as e:
            logger.error(f"Failed to initialize Gemini model: {e}")
            raise

    async def generate_json(self, prompt: str) -> Dict[str, Any]:
        """
        Make one call to Gemini and parse its answer as a JSON object.

        Args:
            prompt: Full prompt text

        Returns:
            Parsed JSON object (shape is not validated here)

        Raises:
            InsightGenerationError: API/transport failure, with status code when known
            InsightResponseError: Response was empty or not a JSON object
        """
        logger.info(f"Calling Gemini ({self.model_name}), prompt length {len(prompt)}")
        try:
            response = await self.model.generate_content_async(prompt)
        except google_exceptions.GoogleAPICallError as err:
            logger.warning(f"Gemini API error ({err.code}): {err.message}")
            raise InsightGenerationError(f"Gemini API error: {err.message}", status_code=err.code) from err
        except google_exceptions.GoogleAPIError as err:
            raise InsightGenerationError(f"Gemini request failed: {err}") from err

        try:
            text = response.text
        except ValueError as err:
            # Raised by the SDK when the candidate was blocked or has no parts
            raise InsightResponseError(f"Gemini returned no text: {err}") from err

        return extract_json(text)


# Global instance (singleton pattern)
_gemini_service_instance = None

def get_gemini_service() -> GeminiService:
    """
    Get or create the global GeminiService instance.

    Returns:
        Shared GeminiService instance
    """
    global _gemini_service_instance
    if _gemini_service_instance is None:
        _gemini_service_instance = GeminiService()
    return _gemini_service_instance
