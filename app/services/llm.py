"""
LLM prompt generation service
LLM 提示词生成服务 - 使用 httpx 直接请求 OpenAI 兼容的 /chat/completions 接口
生成失败时回退到静态提示词列表
"""

import logging
from typing import Optional, Dict, Any, List
from datetime import datetime
import httpx

from app.core.config import settings
from app.services.prompts import pick_random_prompt, sanitize_prompt

logger = logging.getLogger(__name__)

MIN_PROMPT_LENGTH = 6

FAMILY_FRIENDLY_TONE = "family-friendly, silly, playful"
EDGY_TONE = "PG-13, silly, light edgy but still not hateful/sexual/graphic"

USER_INSTRUCTION = (
    "Create ONE image prompt for a multiplayer party game (Cards Against Humanity x Pictionary). "
    "Rules: 8-16 words, highly visual, comedic, no blanks like ____, no numbering, no quotes, "
    "no questions. Output ONLY the prompt text."
)


class PromptGenerationError(Exception):
    """Raised when the remote model produced no usable prompt"""


def build_messages(family_friendly: bool) -> List[Dict[str, str]]:
    """System + user messages for a single prompt request"""
    tone = FAMILY_FRIENDLY_TONE if family_friendly else EDGY_TONE
    system = (
        "You generate short, funny visual prompts for a party image game. "
        "No hate, no sexual content, no violence/gore, no politics, no real-person targeting. "
        f"Tone: {tone}. Output only the prompt text."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": USER_INSTRUCTION},
    ]


class PromptGenerator:
    """
    Round prompt source
    一次远程调用，不重试；调用方通过 get_prompt_text 获得带兜底的结果
    """

    def __init__(
        self,
        api_base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base_url = api_base_url or settings.OPENAI_BASE_URL
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.timeout = float(settings.OPENAI_TIMEOUT)
        self._transport = transport

        self.last_error: Optional[str] = None
        self.request_count = 0
        self.fallback_count = 0
        self.last_success_at: Optional[datetime] = None

    async def _request_completion(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        api_url = self.api_base_url.rstrip("/") + "/chat/completions"
        request_body = {
            "model": self.model,
            "messages": messages,
            "max_tokens": settings.OPENAI_MAX_TOKENS,
            "temperature": settings.OPENAI_TEMPERATURE,
        }

        logger.info(f"[LLM_REQUEST] POST {api_url} model={self.model}")

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.post(api_url, json=request_body)

        self.request_count += 1
        logger.info(f"[LLM_RESPONSE] Status: {response.status_code}")

        if response.status_code != 200:
            error_text = response.text[:200] if response.text else "No response body"
            raise PromptGenerationError(f"HTTP {response.status_code}: {error_text}")

        try:
            data = response.json()
        except ValueError as e:
            raise PromptGenerationError(f"Response was not valid JSON: {response.text[:200]}") from e
        if not isinstance(data, dict):
            raise PromptGenerationError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    @staticmethod
    def _extract_content(data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise PromptGenerationError("Response contained no choices")

        choice = choices[0]
        if not isinstance(choice, dict):
            raise PromptGenerationError("Malformed choice in response")
        if choice.get("finish_reason") == "length":
            logger.warning("[LLM_RESPONSE] Prompt was truncated (finish_reason: length)")

        message = choice.get("message") or {}
        return message.get("content") or ""

    async def generate_prompt(self, family_friendly: bool = True) -> str:
        """
        Ask the model for one 8-16 word visual prompt.
        Raises PromptGenerationError on any failure or a degenerate result.
        """
        if not self.api_key:
            raise PromptGenerationError("No API key configured")

        try:
            data = await self._request_completion(build_messages(family_friendly))
        except httpx.HTTPError as e:
            raise PromptGenerationError(f"Request failed: {e}") from e

        prompt = sanitize_prompt(self._extract_content(data))
        if len(prompt) < MIN_PROMPT_LENGTH:
            raise PromptGenerationError("AI returned an empty/invalid prompt")

        self.last_success_at = datetime.now()
        logger.info(f"[LLM] Generated prompt: {prompt}")
        return prompt

    async def get_prompt_text(self, family_friendly: bool = True) -> str:
        """Prompt for a new or rerolled round; never raises"""
        try:
            return await self.generate_prompt(family_friendly)
        except Exception as e:
            self.last_error = str(e)
            self.fallback_count += 1
            logger.warning(f"[LLM] Prompt generation failed, using static prompt: {e}")
            return pick_random_prompt()

    async def health_check(self) -> Dict[str, Any]:
        """Prompt generator status"""
        return {
            "configured": bool(self.api_key),
            "model": self.model,
            "last_error": self.last_error,
            "request_count": self.request_count,
            "fallback_count": self.fallback_count,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
        }


# Global prompt generator instance
prompt_generator = PromptGenerator()


def get_prompt_generator() -> PromptGenerator:
    """FastAPI dependency returning the shared prompt generator"""
    return prompt_generator
