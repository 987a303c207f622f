from __future__ import annotations

from changelens_core.errors import ProviderError, TransportError
from changelens_core.providers.base import BaseOracle


class AnthropicOracle(BaseOracle):
    MODEL = "claude-3-5-haiku-latest"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 10.0):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this oracle. "
                "Install it with: pip install 'changelens[anthropic]'"
            )
        self.model = model or self.MODEL
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        import anthropic
        from anthropic.types import TextBlock

        kwargs = {}
        if system_prompt:
            kwargs["system"] = system_prompt
        try:
            response = self.client.messages.create(
                model=self.model,
                messages=[{"role": "user", "content": user_prompt}],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
                **kwargs,
            )
        except anthropic.APIConnectionError as e:
            raise TransportError(f"Anthropic API unreachable: {e}") from e
        except anthropic.APIError as e:
            raise ProviderError(f"Anthropic API error: {e}") from e

        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        if not text_blocks:
            raise ProviderError("Anthropic API returned no text")
        return "".join(text_blocks).strip()
