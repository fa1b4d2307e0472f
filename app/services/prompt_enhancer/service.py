"""
Prompt enhancer: rewrites the user's animation prompt with a vision model that
sees the source image. Best-effort by contract: `enhance` always returns a
usable prompt, falling back to the original on any error.
"""
import logging
from dataclasses import dataclass

import pybreaker
from openai import OpenAI

from app.services.circuit_breaker import get_circuit_breaker

logger = logging.getLogger("llm.prompt_enhancer")

SYSTEM_PROMPT = (
    "You write prompts for an image-to-video model that animates a single still image "
    "into a short looping clip. Given the image and the user's idea, return one improved "
    "prompt in English: describe the motion, camera movement and atmosphere in concrete "
    "terms, keep the subject and composition of the image, no more than 80 words. "
    "Return only the prompt text."
)


@dataclass
class EnhancementResult:
    prompt: str
    enhanced: bool
    error: str | None = None


class PromptEnhancer:
    def __init__(
        self,
        client: OpenAI | None,
        model: str,
        max_chars: int = 1000,
        enabled: bool = True,
        breaker: pybreaker.CircuitBreaker | None = None,
    ):
        self.client = client
        self.model = model
        self.max_chars = max_chars
        self.enabled = enabled and client is not None
        self.breaker = breaker

    def enhance(self, prompt: str, image_url: str) -> EnhancementResult:
        """Return the enhanced prompt, or the original prompt with the reason it was kept."""
        if not self.enabled:
            return EnhancementResult(prompt=prompt, enhanced=False, error="disabled")
        try:
            if self.breaker is not None:
                text = self.breaker.call(self._complete, prompt, image_url)
            else:
                text = self._complete(prompt, image_url)
        except Exception as e:
            logger.warning(
                "prompt_enhancement_fallback",
                extra={"error": f"{type(e).__name__}: {e}"[:300]},
            )
            return EnhancementResult(prompt=prompt, enhanced=False, error=type(e).__name__)

        text = _clean(text)
        if not text:
            logger.warning("prompt_enhancement_fallback", extra={"error": "empty_response"})
            return EnhancementResult(prompt=prompt, enhanced=False, error="empty_response")
        if len(text) > self.max_chars:
            text = text[: self.max_chars]
        logger.info("prompt_enhanced", extra={"prompt_len": len(text)})
        return EnhancementResult(prompt=text, enhanced=True)

    def _complete(self, prompt: str, image_url: str) -> str | None:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
            max_tokens=300,
        )
        if not response.choices:
            return None
        return response.choices[0].message.content

    @classmethod
    def from_settings(cls, settings) -> "PromptEnhancer":
        client = None
        if settings.openai_api_key:
            client = OpenAI(
                api_key=settings.openai_api_key,
                timeout=settings.prompt_enhancer_timeout,
                max_retries=0,
            )
        return cls(
            client=client,
            model=settings.prompt_enhancer_model,
            max_chars=settings.prompt_enhancer_max_chars,
            enabled=settings.prompt_enhancer_enabled,
            breaker=get_circuit_breaker("openai"),
        )


def _clean(text: str | None) -> str:
    """Strip whitespace and wrapping quotes the model sometimes adds."""
    if not text or not isinstance(text, str):
        return ""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    return text
