"""
Structured-output calls to the hosted model.
Uses the OpenAI-compatible chat completions API (OpenRouter by default) and
returns the parsed JSON object of the reply. Output validation against the
caller's pydantic model happens in the calling flow.
"""
import json
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from openai import AsyncOpenAI, APIError
from pydantic import ValidationError

from app.config import (
    OPENROUTER_API_KEY,
    OPENAI_API_KEY,
    LLM_BASE_URL,
    LLM_MAX_TOKENS,
    API_TIMEOUT,
    API_CONNECT_TIMEOUT,
)
from app.prompts import JSON_ONLY_INSTRUCTION

logger = logging.getLogger(__name__)


class InferenceError(Exception):
    """The model call failed or returned a payload we cannot use"""


def create_llm_client() -> Optional[AsyncOpenAI]:
    api_key = OPENROUTER_API_KEY or OPENAI_API_KEY
    if not api_key:
        logger.warning("No LLM API key configured - inference calls will fail")
        return None

    # httpx client carries the connect/read timeouts
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=API_CONNECT_TIMEOUT,
            read=API_TIMEOUT,
            write=API_TIMEOUT,
            pool=API_TIMEOUT
        )
    )
    client = AsyncOpenAI(
        base_url=LLM_BASE_URL,
        api_key=api_key,
        http_client=http_client,
    )
    logger.info(f"LLM client initialized ({LLM_BASE_URL or 'api.openai.com'}) with {API_TIMEOUT:g}s timeout")
    return client


llm_client = create_llm_client()


def extract_json(raw_text: str) -> str:
    """Strip markdown code fences and surrounding prose from a JSON reply"""
    json_str = raw_text.strip()

    if json_str.startswith("```json"):
        json_str = json_str[7:]
    elif json_str.startswith("```"):
        json_str = json_str[3:]

    if json_str.endswith("```"):
        json_str = json_str[:-3]

    json_str = json_str.strip()

    # Find the outermost object if there's extra text
    if not json_str.startswith("{"):
        start_idx = json_str.find("{")
        end_idx = json_str.rfind("}")
        if start_idx != -1 and end_idx != -1:
            json_str = json_str[start_idx:end_idx + 1]

    return json_str


def summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return ", ".join(parts)


async def generate_json(
    prompt_text: str,
    schema: Dict[str, Any],
    model: str,
    image_url: Optional[str] = None,
    task: str = "inference",
    not_configured_message: str = "Inference service not configured",
) -> Dict[str, Any]:
    """Send one prompt (optionally with an image) and return the JSON object reply.

    Args:
        prompt_text: Instruction already interpolated with the input fields
        schema: JSON schema of the expected output, embedded in the prompt
        model: Model name on the provider
        image_url: Data URI of an image to attach
        task: Label used in logs

    Raises:
        InferenceError: on missing configuration, transport failure, timeout,
            empty reply or a reply that is not a JSON object
    """
    if not llm_client:
        logger.error(f"LLM API key not configured for {task}")
        raise InferenceError(not_configured_message)

    content = [
        {
            "type": "text",
            "text": prompt_text + "\n\n" + JSON_ONLY_INSTRUCTION.format(
                schema=json.dumps(schema, ensure_ascii=False)
            ),
        }
    ]
    if image_url:
        content.append({"type": "image_url", "image_url": {"url": image_url}})

    try:
        response = await asyncio.wait_for(
            llm_client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": content}],
                max_tokens=LLM_MAX_TOKENS,
                response_format={"type": "json_object"},
                extra_headers={"X-Title": "Plant Doctor"},
            ),
            timeout=API_TIMEOUT
        )
    except asyncio.TimeoutError as e:
        logger.error(f"{task}: model timeout after {API_TIMEOUT:g} seconds")
        raise InferenceError(f"The model did not respond within {API_TIMEOUT:g} seconds.") from e
    except APIError as e:
        logger.error(f"{task}: model API error: {e}")
        raise InferenceError(f"Model request failed: {e}") from e
    except httpx.HTTPError as e:
        logger.error(f"{task}: HTTP error: {e}")
        raise InferenceError(f"Could not reach the model service: {e}") from e

    raw_text = response.choices[0].message.content if response.choices else None
    if not raw_text:
        raise InferenceError("The model returned an empty response.")

    logger.info(f"{task} raw response: {raw_text[:500]}...")

    try:
        data = json.loads(extract_json(raw_text))
    except json.JSONDecodeError as e:
        logger.warning(f"{task}: failed to parse JSON from response: {e}")
        raise InferenceError("The model response was not valid JSON.") from e

    if not isinstance(data, dict):
        raise InferenceError("The model response was not a JSON object.")
    return data
