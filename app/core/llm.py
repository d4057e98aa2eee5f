"""Provider dispatch for stage contribution generation.

``call_ai_model`` never raises for provider-side problems: the error message and
a code are returned on the response so one failing model can't take down a
multi-model round.
"""

import time
from typing import Any

from anthropic import APIError as AnthropicAPIError
from anthropic import AsyncAnthropic
from openai import APIError as OpenAIAPIError
from openai import AsyncOpenAI

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.schemas_dialectic import AIModelConfig, AIModelResponse

logger = get_logger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _error_code(provider: str, error: Exception) -> str:
    status = getattr(error, "status_code", None)
    if status:
        return f"{provider.upper()}_HTTP_{status}"
    return f"{provider.upper()}_{type(error).__name__.upper()}"


def _split_system(messages: list[dict[str, str]]) -> tuple[str | None, list[dict[str, str]]]:
    """Anthropic takes the system prompt as a separate argument."""
    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    rest = [m for m in messages if m.get("role") != "system"]
    return ("\n\n".join(system_parts) or None), rest


async def _call_anthropic(
    model_config: AIModelConfig, messages: list[dict[str, str]], max_tokens: int
) -> AIModelResponse:
    settings = get_settings()
    system, chat_messages = _split_system(messages)

    kwargs: dict[str, Any] = {
        "model": model_config.api_identifier,
        "max_tokens": max_tokens,
        "messages": chat_messages,
    }
    if system:
        kwargs["system"] = system

    start = time.perf_counter()
    async with AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY) as client:
        response = await client.messages.create(**kwargs)

    text = "".join(
        block.text for block in response.content if getattr(block, "type", None) == "text"
    )
    return AIModelResponse(
        content=text or None,
        input_tokens=response.usage.input_tokens if response.usage else None,
        output_tokens=response.usage.output_tokens if response.usage else None,
        processing_time_ms=_elapsed_ms(start),
        raw_provider_response=response.model_dump(mode="json"),
    )


async def _call_openai(
    model_config: AIModelConfig, messages: list[dict[str, str]], max_tokens: int
) -> AIModelResponse:
    settings = get_settings()
    start = time.perf_counter()
    async with AsyncOpenAI(api_key=settings.OPENAI_API_KEY) as client:
        response = await client.chat.completions.create(
            model=model_config.api_identifier,
            messages=messages,
            max_tokens=max_tokens,
        )

    text = response.choices[0].message.content if response.choices else None
    return AIModelResponse(
        content=text or None,
        input_tokens=response.usage.prompt_tokens if response.usage else None,
        output_tokens=response.usage.completion_tokens if response.usage else None,
        processing_time_ms=_elapsed_ms(start),
        raw_provider_response=response.model_dump(mode="json"),
    )


async def call_ai_model(
    model_config: AIModelConfig,
    messages: list[dict[str, str]],
    options: dict[str, Any] | None = None,
) -> AIModelResponse:
    """
    Call one model with a chat-style message list.

    Args:
        model_config: Provider catalog row for the model
        messages: ``[{"role": ..., "content": ...}]``
        options: Optional overrides (``max_output_tokens``)

    Returns:
        AIModelResponse; on failure ``error`` and ``error_code`` are set
    """
    options = options or {}
    max_tokens = (
        options.get("max_output_tokens")
        or model_config.config.get("max_output_tokens")
        or get_settings().DEFAULT_MAX_OUTPUT_TOKENS
    )
    provider = model_config.provider.lower()

    try:
        if provider == "anthropic":
            return await _call_anthropic(model_config, messages, max_tokens)
        if provider == "openai":
            return await _call_openai(model_config, messages, max_tokens)
    except (AnthropicAPIError, OpenAIAPIError) as e:
        logger.error(
            f"{provider} call failed for {model_config.api_identifier}: {e}",
            extra={"model_id": model_config.id},
        )
        return AIModelResponse(error=str(e), error_code=_error_code(provider, e))

    return AIModelResponse(
        error=f"Unsupported AI provider '{model_config.provider}'",
        error_code="UNSUPPORTED_PROVIDER",
    )
