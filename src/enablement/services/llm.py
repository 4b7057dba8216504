"""LLM provider abstraction via LiteLLM Router.

Generates enablement packages from the constrained prompt built by
``knowledge.prompt``. Claude Sonnet is the primary model; GPT-4o is the
fallback when an OpenAI key is also configured.

Errors are never papered over: any provider failure, or an empty response,
raises GenerationError so the pipeline aborts instead of sending invented
text.
"""

from __future__ import annotations

import structlog
from litellm import Router

from src.enablement.config import Settings
from src.enablement.core.errors import GenerationError

logger = structlog.get_logger(__name__)

MODEL_GROUP = "enablement"


class LLMService:
    """Text generation through a LiteLLM Router.

    Args:
        settings: Provides provider keys, timeout and max tokens.
    """

    def __init__(self, settings: Settings) -> None:
        self._max_tokens = settings.LLM_MAX_TOKENS

        model_list = []

        # Primary model: Claude Sonnet
        if settings.ANTHROPIC_API_KEY:
            model_list.append({
                "model_name": MODEL_GROUP,
                "litellm_params": {
                    "model": "anthropic/claude-sonnet-4-20250514",
                    "api_key": settings.ANTHROPIC_API_KEY,
                },
            })

        # Fallback model: GPT-4o
        if settings.OPENAI_API_KEY:
            model_list.append({
                "model_name": MODEL_GROUP,
                "litellm_params": {
                    "model": "openai/gpt-4o",
                    "api_key": settings.OPENAI_API_KEY,
                },
            })

        if not model_list:
            logger.warning("llm.unavailable", reason="no API keys configured")
            self.router = None
            return

        self.router = Router(
            model_list=model_list,
            num_retries=0,  # a failed generation aborts the run, never retried
            timeout=settings.LLM_TIMEOUT,
            allowed_fails=3,
            cooldown_time=30,
        )

    @property
    def available(self) -> bool:
        return self.router is not None

    async def generate(self, prompt: str) -> str:
        """Return the model's text for ``prompt``.

        Raises:
            GenerationError: No keys configured, provider error, or empty
                response.
        """
        if not self.router:
            raise GenerationError("No LLM API keys configured")

        try:
            response = await self.router.acompletion(
                model=MODEL_GROUP,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self._max_tokens,
                temperature=0.3,
            )
        except Exception as exc:
            logger.error("llm.generation_failed", error=str(exc))
            raise GenerationError(str(exc)) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("LLM returned an empty response")

        logger.info("llm.generated", model=getattr(response, "model", ""), length=len(content))
        return content
