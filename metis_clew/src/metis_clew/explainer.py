"""
Code Explainer

Single LLM call per request: the full snippet and the selected fragment go
in, a structured explanation comes out:

    {
        "whatItDoes": "...",
        "whyItMatters": "...",
        "keyConcepts": ["...", "..."],
        "relatedPatterns": ["...", "..."]
    }
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from openai import AsyncOpenAI

from metis_clew.exceptions import (
    ExplanationServiceError,
    ExplanationTimeoutError,
    MissingFieldsError,
)

load_dotenv()

logger = logging.getLogger(__name__)

INVALID_RESPONSE_ERROR = "Invalid response from AI"
DEFAULT_TIMEOUT_SECONDS = 25.0  # Stays under a 30s gateway limit
DEFAULT_MAX_TOKENS = 800

_TEXT_FIELDS = ("whatItDoes", "whyItMatters")
_LIST_FIELDS = ("keyConcepts", "relatedPatterns")


def validate_request(code_snippet: Optional[str], selected_code: Optional[str], language: Optional[str]):
    """
    Raises:
        MissingFieldsError: If any of the three fields is empty
    """
    missing = [
        name for name, value in (
            ("selected_code", selected_code),
            ("code_snippet", code_snippet),
            ("language", language),
        )
        if not value
    ]
    if missing:
        raise MissingFieldsError(missing)


def parse_explanation(text: Optional[str]) -> Dict[str, Any]:
    """
    Parse the model's answer into an explanation dict.

    Anything that is not a JSON object with the expected fields becomes
    {"error": "Invalid response from AI"}.
    """
    try:
        data = json.loads(text or "")
    except (json.JSONDecodeError, TypeError):
        logger.error(f"Invalid AI JSON: {(text or '')[:200]}")
        return {"error": INVALID_RESPONSE_ERROR}

    if not isinstance(data, dict) or not all(isinstance(data.get(f), str) for f in _TEXT_FIELDS):
        logger.error(f"AI JSON missing explanation fields: {list(data) if isinstance(data, dict) else type(data).__name__}")
        return {"error": INVALID_RESPONSE_ERROR}

    explanation = {field: data[field] for field in _TEXT_FIELDS}
    for field in _LIST_FIELDS:
        value = data.get(field)
        explanation[field] = [str(item) for item in value] if isinstance(value, list) else []
    return explanation


class CodeExplainer:
    """Explains a selected code fragment in the context of its snippet."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS
    ):
        """
        Args:
            client: AsyncOpenAI-compatible client (created from OPENAI_API_KEY if None)
            model: Chat model name (OPENAI_MODEL, default gpt-4o-mini)
            timeout: Seconds to wait for the model (EXPLAIN_TIMEOUT_SECONDS, default 25)
            max_tokens: Completion token limit
        """
        if client is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY must be set in environment")
            client = AsyncOpenAI(api_key=api_key)

        self.llm_client = client
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = timeout or float(os.getenv("EXPLAIN_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
        self.max_tokens = max_tokens

    def build_prompt(self, code_snippet: str, selected_code: str, language: str) -> str:
        return f"""Explain the selected {language} code using simple, accurate language.
Output valid JSON with this structure:

{{
  "whatItDoes": "...",
  "whyItMatters": "...",
  "keyConcepts": ["...", "..."],
  "relatedPatterns": ["...", "..."]
}}

Full code:

{code_snippet}

Selected code:

{selected_code}
"""

    async def explain(self, code_snippet: str, selected_code: str, language: str) -> Dict[str, Any]:
        """
        Explain `selected_code`.

        Returns:
            Explanation dict, or {"error": ...} when the answer was unusable

        Raises:
            MissingFieldsError: If a required field is empty
            ExplanationTimeoutError: If the model took longer than self.timeout
            ExplanationServiceError: If the provider call failed
        """
        validate_request(code_snippet, selected_code, language)
        prompt = self.build_prompt(code_snippet, selected_code, language)

        try:
            response = await asyncio.wait_for(
                self.llm_client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=self.max_tokens,
                    temperature=0.2,
                    response_format={"type": "json_object"}
                ),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"AI request timed out after {self.timeout}s")
            raise ExplanationTimeoutError(self.timeout)
        except Exception as e:
            logger.error(f"AI provider error: {e}")
            raise ExplanationServiceError(e) from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            logger.error(f"Unexpected AI response shape: {e}")
            return {"error": INVALID_RESPONSE_ERROR}

        return parse_explanation(text)
