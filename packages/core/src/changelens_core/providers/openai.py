from __future__ import annotations

try:
    import openai as _openai
except ImportError:
    _openai = None  # type: ignore[assignment]

from changelens_core.errors import ProviderError, TransportError
from changelens_core.providers.base import BaseOracle


class OpenAIOracle(BaseOracle):
    # A yes/no judgement on two short strings does not need a large model.
    MODEL = "gpt-4o-mini"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 10.0):
        if _openai is None:
            raise ImportError(
                "The 'openai' package is required for this oracle. " "Install it with: pip install 'changelens[openai]'"
            )
        self.model = model or self.MODEL
        # SDK retries off: BaseOracle owns the retry policy.
        self.client = _openai.OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except _openai.APIConnectionError as e:
            raise TransportError(f"OpenAI API unreachable: {e}") from e
        except _openai.APIError as e:
            raise ProviderError(f"OpenAI API error: {e}") from e

        if not response.choices:
            raise ProviderError("OpenAI API returned no choices")
        return response.choices[0].message.content or ""
