"""LLM collaborator boundary.

Model inference itself is not part of this package. A backend receives:
- the analytics system prompt, once, on the system/instruction channel
- the data context + question (ContextBuilder.build_full_prompt) as the user turn

OpenAIChatBackend is optional: the `openai` SDK is imported lazily so
offline installs and tests are unaffected.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Optional, Protocol, Union

from .config import DEFAULT_LLM_MODEL

GGUF_MAGIC = b"GGUF"


class CompletionBackend(Protocol):
    def stream(
        self,
        system_prompt: str,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> Iterator[str]:  # pragma: no cover - interface
        ...


class OpenAIChatBackend:
    """Streams chat completions through the OpenAI SDK."""

    def __init__(self, api_key: str, model: str = DEFAULT_LLM_MODEL, base_url: Optional[str] = None) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url

    @classmethod
    def from_env(cls, model: Optional[str] = None) -> Optional["OpenAIChatBackend"]:
        """Backend from OPENAI_API_KEY / OPENAI_BASE_URL, or None when no key is set."""
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            return None
        return cls(
            api_key=api_key,
            model=model or os.getenv("ANALYTICS_LLM_MODEL", DEFAULT_LLM_MODEL),
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )

    def stream(
        self,
        system_prompt: str,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> Iterator[str]:
        from openai import OpenAI  # type: ignore

        client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        resp = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
        )
        for chunk in resp:
            if not chunk.choices:
                continue
            text = chunk.choices[0].delta.content
            if text:
                yield text


def is_valid_gguf(path: Union[str, Path]) -> bool:
    """True if the file exists and starts with the ASCII magic `GGUF`."""
    p = Path(path)
    if not p.is_file():
        return False
    try:
        with p.open("rb") as f:
            return f.read(len(GGUF_MAGIC)) == GGUF_MAGIC
    except OSError:
        return False
