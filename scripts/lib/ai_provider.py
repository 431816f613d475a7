"""
Signup Hub — LLM Provider
===========================

Thin async wrapper over the Groq and Claude chat APIs used to turn a
dashboard summary into coaching text. AI_PROVIDER picks the backend
("groq" by default). Every call, successful or not, is recorded in the
ai_recommendation_logs table when Supabase is configured.

Usage:
    from scripts.lib.ai_provider import ai_complete
    response = await ai_complete(
        task="recommendations",
        system_prompt="You coach an education sales team...",
        user_prompt="Total Parent Contacts: 120 ...",
        dashboard_type="freesignup",
    )
    print(response.content)
"""
from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Optional

from scripts.lib.errors import ConfigError
from scripts.lib.logger import setup_logger

logger = setup_logger("ai_provider")

AI_LOG_TABLE = "ai_recommendation_logs"


@dataclass
class AIResponse:
    content: str
    provider: str          # "groq" | "claude"
    model: str
    input_tokens: int
    output_tokens: int
    latency_ms: int


GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5-20250929")

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.7


def resolve_provider(provider: Optional[str] = None) -> str:
    chosen = (provider or os.getenv("AI_PROVIDER", "groq")).strip().lower()
    if chosen not in ("groq", "claude"):
        raise ConfigError(f"Unsupported AI provider: {chosen}", setting="AI_PROVIDER")
    return chosen


async def ai_complete(
    task: str,
    system_prompt: str,
    user_prompt: str,
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    temperature: float = DEFAULT_TEMPERATURE,
    dashboard_type: Optional[str] = None,
    json_mode: bool = False,
) -> AIResponse:
    """
    Run one completion against the configured provider and log it.

    Args:
        task: Label for the audit log (e.g. "recommendations").
        system_prompt: System-level instructions.
        user_prompt: Prompt body carrying the dashboard figures.
        provider: Force "groq" or "claude"; defaults to AI_PROVIDER.
        model: Override the provider's default model.
        max_tokens: Max output tokens.
        temperature: Sampling temperature.
        dashboard_type: Dashboard view the call was made for, for the audit log.
        json_mode: Ask the provider for a JSON object (Groq only).

    Raises:
        ConfigError: Unknown provider or missing API key.
    """
    chosen = resolve_provider(provider)
    chosen_model = model or (CLAUDE_MODEL if chosen == "claude" else GROQ_MODEL)

    start = time.perf_counter()
    try:
        if chosen == "claude":
            response = await _call_claude(
                system_prompt, user_prompt,
                model=chosen_model, max_tokens=max_tokens, temperature=temperature,
            )
        else:
            response = await _call_groq(
                system_prompt, user_prompt,
                model=chosen_model, max_tokens=max_tokens, temperature=temperature,
                json_mode=json_mode,
            )
    except ConfigError:
        raise
    except Exception as e:
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.error("AI [%s/%s] task=%s failed: %s", chosen, chosen_model, task, e)
        await log_ai_error(task, chosen, chosen_model, e, dashboard_type, latency_ms)
        raise

    await _log_ai_call(
        task=task,
        provider=response.provider,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
        latency_ms=response.latency_ms,
        dashboard_type=dashboard_type,
    )
    logger.info(
        "AI [%s/%s] task=%s tokens=%d+%d latency=%dms",
        response.provider, response.model, task,
        response.input_tokens, response.output_tokens, response.latency_ms,
    )
    return response


async def _call_groq(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str,
    max_tokens: int,
    temperature: float,
    json_mode: bool = False,
) -> AIResponse:
    from groq import AsyncGroq

    api_key = os.getenv("GROQ_API_KEY")
    if not api_key:
        raise ConfigError("GROQ_API_KEY not set", setting="GROQ_API_KEY")

    kwargs = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    client = AsyncGroq(api_key=api_key)
    start = time.perf_counter()
    response = await client.chat.completions.create(**kwargs)
    latency_ms = int((time.perf_counter() - start) * 1000)

    usage = response.usage
    return AIResponse(
        content=response.choices[0].message.content or "",
        provider="groq",
        model=model,
        input_tokens=usage.prompt_tokens if usage else 0,
        output_tokens=usage.completion_tokens if usage else 0,
        latency_ms=latency_ms,
    )


async def _call_claude(
    system_prompt: str,
    user_prompt: str,
    *,
    model: str,
    max_tokens: int,
    temperature: float,
) -> AIResponse:
    import anthropic

    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise ConfigError("ANTHROPIC_API_KEY not set", setting="ANTHROPIC_API_KEY")

    client = anthropic.AsyncAnthropic(api_key=api_key)
    start = time.perf_counter()
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system_prompt,
        messages=[{"role": "user", "content": user_prompt}],
    )
    latency_ms = int((time.perf_counter() - start) * 1000)

    content = "".join(
        block.text for block in response.content if hasattr(block, "text")
    )
    return AIResponse(
        content=content,
        provider="claude",
        model=model,
        input_tokens=response.usage.input_tokens,
        output_tokens=response.usage.output_tokens,
        latency_ms=latency_ms,
    )


async def _log_ai_call(
    task: str,
    provider: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    latency_ms: int,
    dashboard_type: Optional[str] = None,
    success: bool = True,
    error_message: Optional[str] = None,
) -> None:
    """Best-effort audit row; skipped when Supabase is not configured."""
    if not os.getenv("SUPABASE_URL"):
        return
    try:
        from scripts.lib.supabase_client import get_client
        row = {
            "task": task,
            "provider": provider,
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "latency_ms": latency_ms,
            "success": success,
        }
        if dashboard_type:
            row["dashboard_type"] = dashboard_type
        if error_message:
            row["error_message"] = error_message
        get_client().table(AI_LOG_TABLE).insert(row).execute()
    except Exception as e:
        logger.warning("Failed to log AI call: %s", e)


async def log_ai_error(
    task: str,
    provider: str,
    model: str,
    error: Exception,
    dashboard_type: Optional[str] = None,
    latency_ms: int = 0,
) -> None:
    await _log_ai_call(
        task=task,
        provider=provider,
        model=model,
        input_tokens=0,
        output_tokens=0,
        latency_ms=latency_ms,
        dashboard_type=dashboard_type,
        success=False,
        error_message=str(error),
    )
