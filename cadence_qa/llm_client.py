"""
LLM Client - the text-generation capability the orchestrator drives.

Anything with `generate()` and `stream()` can stand in for the model; the
OpenAI-backed implementation adds per-call timeouts and exponential-backoff
retries.
"""

import time
from typing import Any, Iterator, List, Optional, Protocol

from openai import OpenAI

from .config import LLMConfig
from .errors import GenerationError
from .text_utils import strip_markdown_fences


class TextGenerator(Protocol):
    def generate(self, system: str, user: str, temperature: float = 0.7, timeout: Optional[float] = None,
                 max_retries: Optional[int] = None) -> str:
        ...

    def stream(self, system: str, user: str, temperature: float = 0.7, timeout: Optional[float] = None) -> Iterator[str]:
        ...


def call_chat_completion(
    client: OpenAI,
    model: str,
    messages: List[dict],
    timeout: float = 30.0,
    max_retries: int = 2,
    debug: bool = False,
    **kwargs
) -> Any:
    """
    Chat completion with timeout and retry.

    Args:
        client: OpenAI client instance
        model: Model name (e.g., "gpt-4o")
        messages: Chat messages
        timeout: Request timeout in seconds
        max_retries: Retries after the first call
        debug: Print retry progress
        **kwargs: Passed through to chat.completions.create

    Returns:
        Chat completion response

    Raises:
        GenerationError: If every attempt fails
    """
    last_error = None

    for attempt in range(max_retries + 1):
        try:
            return client.chat.completions.create(
                model=model,
                messages=messages,
                timeout=timeout,
                **kwargs
            )
        except Exception as e:
            last_error = e
            if attempt < max_retries:
                wait_time = 2 ** attempt
                if debug:
                    print(f"LLM call failed (attempt {attempt + 1}/{max_retries + 1}): {e}")
                    print(f"Retrying in {wait_time} seconds...")
                time.sleep(wait_time)

    raise GenerationError(
        f"LLM call failed after {max_retries + 1} attempts: {last_error}",
        context={"model": model, "timeout": timeout},
    )


class OpenAIGenerator:
    """TextGenerator backed by the OpenAI chat completions API"""

    def __init__(self, config: Optional[LLMConfig] = None, client: Optional[OpenAI] = None, debug: bool = False):
        self.config = config or LLMConfig()
        if client is None:
            if not self.config.api_key:
                raise GenerationError(
                    "OPENAI_API_KEY not found. Set it in .env or the environment.",
                    code="MISSING_API_KEY",
                )
            client = OpenAI(api_key=self.config.api_key)
        self.client = client
        self.debug = debug

    @staticmethod
    def _messages(system: str, user: str) -> List[dict]:
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    def generate(self, system: str, user: str, temperature: float = 0.7, timeout: Optional[float] = None,
                 max_retries: Optional[int] = None) -> str:
        response = call_chat_completion(
            self.client,
            self.config.model,
            self._messages(system, user),
            timeout=self.config.request_timeout if timeout is None else timeout,
            max_retries=self.config.max_retries if max_retries is None else max_retries,
            debug=self.debug,
            temperature=temperature,
        )
        content = response.choices[0].message.content
        if not content:
            raise GenerationError("Model returned an empty response", code="EMPTY_RESPONSE")
        return strip_markdown_fences(content)

    def stream(self, system: str, user: str, temperature: float = 0.7,
               timeout: Optional[float] = None) -> Iterator[str]:
        """Yield raw text chunks as the model produces them"""
        try:
            chunks = self.client.chat.completions.create(
                model=self.config.model,
                messages=self._messages(system, user),
                temperature=temperature,
                timeout=self.config.request_timeout if timeout is None else timeout,
                stream=True,
            )
            for chunk in chunks:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            raise GenerationError(f"Streaming failed: {e}", code="STREAM_FAILED")
