"""
Study assistant backed by Gemini
"""

import logging
from typing import List, Optional

import google.generativeai as genai
from fastapi.concurrency import run_in_threadpool

from app.ai.prompts import SYSTEM_INSTRUCTION
from app.core.errors import RateLimited, ServiceError

logger = logging.getLogger(__name__)

# Only the most recent turns are forwarded to the model
HISTORY_LIMIT = 10
MAX_OUTPUT_TOKENS = 800
TEMPERATURE = 0.7


class AssistantMisconfigured(ServiceError):
    status = 500


def to_gemini_history(history: List[dict]) -> List[dict]:
    """Map {role, content} chat turns onto Gemini's {role, parts} format"""
    turns = []
    for turn in history[-HISTORY_LIMIT:]:
        content = (turn.get("content") or "").strip()
        if not content:
            continue
        role = "model" if turn.get("role") in ("assistant", "model") else "user"
        turns.append({"role": role, "parts": [content]})
    return turns


def classify_failure(error: Exception) -> ServiceError:
    error_str = str(error)
    if "429" in error_str or "RESOURCE_EXHAUSTED" in error_str or "quota" in error_str.lower():
        return RateLimited("AI service temporarily unavailable. Please try again later.")
    if "API key" in error_str or "API_KEY" in error_str or "PERMISSION_DENIED" in error_str:
        return AssistantMisconfigured("AI service configuration error")
    return ServiceError("Something went wrong with the AI service")


class StudyAssistant:
    def __init__(self, api_key: str, model_name: str):
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.model = genai.GenerativeModel(
            model_name,
            system_instruction=SYSTEM_INSTRUCTION,
            generation_config={"temperature": TEMPERATURE, "max_output_tokens": MAX_OUTPUT_TOKENS},
        )

    def _reply(self, message: str, history: List[dict]) -> dict:
        chat = self.model.start_chat(history=to_gemini_history(history))
        response = chat.send_message(message)

        usage = None
        if getattr(response, "usage_metadata", None):
            usage = {
                "prompt_tokens": response.usage_metadata.prompt_token_count,
                "completion_tokens": response.usage_metadata.candidates_token_count,
            }
        return {"response": response.text.strip(), "usage": usage}

    async def reply(self, message: str, history: Optional[List[dict]] = None) -> dict:
        try:
            return await run_in_threadpool(self._reply, message, history or [])
        except Exception as e:
            logger.error("Gemini request failed (%s): %s", self.model_name, e)
            raise classify_failure(e)
