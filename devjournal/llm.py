from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

PROVIDERS = ("anthropic", "openai")
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5"
DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"

_PROVIDER_KEY_ENV = {
    "anthropic": ("ANTHROPIC_API_KEY",),
    "openai": ("OPENAI_API_KEY",),
}


class GenerationError(RuntimeError):
    pass


@dataclass(frozen=True)
class ProviderCredentials:
    provider: str
    api_key: str
    model: str
    base_url: str | None = None

    def __repr__(self) -> str:
        return (
            f"ProviderCredentials(provider={self.provider!r}, model={self.model!r}, "
            f"base_url={self.base_url!r}, api_key='***')"
        )


@dataclass
class Generation:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0


def default_model(provider: str) -> str:
    if provider == "openai":
        return DEFAULT_OPENAI_MODEL
    return DEFAULT_ANTHROPIC_MODEL


def resolve_credentials(
    provider: str | None,
    *,
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> ProviderCredentials | None:
    """Build credentials from explicit values, falling back to the provider's env key.

    Returns None when no API key is available. The environment is only read.
    """
    resolved = (provider or "anthropic").strip().lower()
    if resolved not in PROVIDERS:
        raise ValueError(f"unknown provider: {provider}")
    key = api_key
    if not key:
        for env_var in _PROVIDER_KEY_ENV[resolved]:
            key = os.getenv(env_var)
            if key:
                break
    if not key:
        return None
    return ProviderCredentials(
        provider=resolved,
        api_key=key,
        model=model or default_model(resolved),
        base_url=base_url or None,
    )


class TextGenerator:
    """Single-shot text generation against Anthropic or an OpenAI-compatible API."""

    def __init__(self, credentials: ProviderCredentials, *, client: Any | None = None) -> None:
        self.credentials = credentials
        self.provider = credentials.provider
        self.model = credentials.model
        self.client = client if client is not None else self._build_client(credentials)

    @staticmethod
    def _build_client(credentials: ProviderCredentials) -> Any:
        if credentials.provider == "anthropic":
            try:
                import anthropic
            except Exception as exc:  # pragma: no cover
                raise RuntimeError("anthropic package is required for model generation") from exc
            kwargs: dict[str, Any] = {"api_key": credentials.api_key}
            if credentials.base_url:
                kwargs["base_url"] = credentials.base_url
            return anthropic.Anthropic(**kwargs)
        try:
            from openai import OpenAI
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("openai package is required for model generation") from exc
        return OpenAI(api_key=credentials.api_key, base_url=credentials.base_url)

    def generate(
        self,
        system: str,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float = 0.0,
    ) -> Generation:
        try:
            if self.provider == "anthropic":
                return self._generate_anthropic(system, prompt, max_tokens, temperature)
            return self._generate_openai(system, prompt, max_tokens, temperature)
        except GenerationError:
            raise
        except Exception as exc:
            logger.warning(
                "model call failed",
                extra={"provider": self.provider, "model": self.model},
                exc_info=exc,
            )
            raise GenerationError(f"{self.provider} generation failed: {exc}") from exc

    def _generate_anthropic(
        self, system: str, prompt: str, max_tokens: int, temperature: float
    ) -> Generation:
        resp = self.client.messages.create(
            model=self.model,
            system=system,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        parts = [
            getattr(block, "text", "")
            for block in (resp.content or [])
            if getattr(block, "type", "text") == "text"
        ]
        usage = getattr(resp, "usage", None)
        return Generation(
            text="".join(parts),
            input_tokens=int(getattr(usage, "input_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "output_tokens", 0) or 0),
        )

    def _generate_openai(
        self, system: str, prompt: str, max_tokens: int, temperature: float
    ) -> Generation:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        if not resp.choices:
            raise GenerationError("openai returned no choices")
        usage = getattr(resp, "usage", None)
        return Generation(
            text=resp.choices[0].message.content or "",
            input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
        )
