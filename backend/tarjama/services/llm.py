"""LLM service using LiteLLM with multi-provider fallback.

Sentence generation and answer grading both go through LLMClient.complete(),
which tries every configured provider in order: Claude Sonnet → Gemini Flash
→ GPT-4o mini. Responses are free text; callers pull structured data out of
them with extract_json(), never assuming the model obeyed the format.
"""

import json
import os
import time
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

import litellm

from tarjama.config import settings

litellm.set_verbose = False


class LLMError(Exception):
    pass


class AllProvidersFailed(LLMError):
    pass


class LLMConfigError(LLMError):
    pass


class MalformedResponse(LLMError):
    pass


MODELS = [
    {
        "name": "anthropic",
        "model": "claude-sonnet-4-20250514",
        "key_env": "ANTHROPIC_API_KEY",
        "key_setting": "anthropic_api_key",
    },
    {
        "name": "gemini",
        "model": "gemini/gemini-2.5-flash",
        "key_env": "GEMINI_KEY",
        "key_setting": "gemini_key",
    },
    {
        "name": "openai",
        "model": "gpt-4o-mini",
        "key_env": "OPENAI_KEY",
        "key_setting": "openai_key",
    },
]


def _get_api_key(model_config: dict) -> str | None:
    """Get API key from settings or environment."""
    key = getattr(settings, model_config["key_setting"], "")
    if key:
        return key
    return os.environ.get(model_config["key_env"], "") or None


def _log_call(
    log_dir: Path,
    model: str,
    success: bool,
    response_time: float,
    error: str | None = None,
    prompt_length: int = 0,
    task_type: str | None = None,
) -> None:
    """Append a log entry for the LLM call."""
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"llm_calls_{datetime.now():%Y-%m-%d}.jsonl"
    entry = {
        "ts": datetime.now().isoformat(),
        "event": "llm_call",
        "model": model,
        "success": success,
        "response_time_s": round(response_time, 2),
        "error": error,
        "prompt_length": prompt_length,
    }
    if task_type:
        entry["task_type"] = task_type
    with open(log_file, "a") as f:
        f.write(json.dumps(entry) + "\n")


class LLMClient:
    """Generative-language client bound to the providers configured at construction.

    Raises LLMConfigError when no provider has credentials, so a missing key
    fails loudly once instead of on every request.
    """

    def __init__(
        self,
        model_override: str | None = None,
        timeout: int | None = None,
        log_dir: Path | None = None,
    ):
        candidates = MODELS
        if model_override:
            candidates = [m for m in MODELS if m["name"] == model_override]
            if not candidates:
                raise LLMConfigError(f"Unknown model override: {model_override}")

        self.providers: list[tuple[dict, str]] = []
        for model_config in candidates:
            api_key = _get_api_key(model_config)
            if api_key:
                self.providers.append((model_config, api_key))

        if not self.providers:
            names = ", ".join(m["key_env"] for m in candidates)
            raise LLMConfigError(f"No LLM API key configured (set one of: {names})")

        self.timeout = timeout or settings.llm_timeout
        self.log_dir = log_dir or settings.log_dir

    def complete(
        self,
        prompt: str,
        system_prompt: str = "",
        max_tokens: int = 1024,
        temperature: float = 0.7,
        task_type: str | None = None,
    ) -> str:
        """Return the raw text content of the first provider that answers.

        Timeouts and provider errors move on to the next provider; when all of
        them fail, AllProvidersFailed carries every error message.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        errors: list[str] = []

        for model_config, api_key in self.providers:
            start = time.time()
            try:
                response = litellm.completion(
                    model=model_config["model"],
                    messages=messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    timeout=self.timeout,
                    api_key=api_key,
                )
                elapsed = time.time() - start
                content = response.choices[0].message.content or ""
                _log_call(
                    self.log_dir,
                    model_config["model"],
                    True,
                    elapsed,
                    prompt_length=len(prompt),
                    task_type=task_type,
                )
                return content

            except Exception as e:
                elapsed = time.time() - start
                errors.append(f"{model_config['name']}: {e}")
                _log_call(
                    self.log_dir,
                    model_config["model"],
                    False,
                    elapsed,
                    error=str(e),
                    prompt_length=len(prompt),
                    task_type=task_type,
                )

        raise AllProvidersFailed(f"All LLM providers failed: {'; '.join(errors)}")


def extract_json(text: str, kind: type = dict) -> Any:
    """Return the first balanced JSON value of type `kind` (list or dict) in text.

    Models wrap JSON in markdown fences or chat around it; every opening
    bracket is tried in order and the first one that decodes to the wanted
    type wins. Raises MalformedResponse when nothing matches.
    """
    if kind not in (list, dict):
        raise ValueError(f"extract_json supports list or dict, not {kind!r}")
    opener = "[" if kind is list else "{"
    decoder = json.JSONDecoder()

    pos = text.find(opener)
    while pos != -1:
        try:
            value, _ = decoder.raw_decode(text, pos)
        except ValueError:
            pass
        else:
            if isinstance(value, kind):
                return value
        pos = text.find(opener, pos + 1)

    label = "array" if kind is list else "object"
    raise MalformedResponse(f"No JSON {label} found in response: {text[:200]!r}")


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    """Process-wide client, built on first use."""
    return LLMClient()
