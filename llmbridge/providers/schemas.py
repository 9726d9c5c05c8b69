"""Canonical request/response shapes shared by every provider."""
from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system", "tool"]


def _now() -> int:
    return int(time.time())


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Role = "user"
    content: str | list[dict[str, Any]] | None = None
    name: str | None = None
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None

    def text(self) -> str:
        """Plain text of the message; structured parts contribute their text fields."""
        if isinstance(self.content, str):
            return self.content
        if not self.content:
            return ""
        return "".join(part.get("text", "") for part in self.content if isinstance(part, dict))

    def has_image(self) -> bool:
        return isinstance(self.content, list) and any(
            isinstance(part, dict) and part.get("type") in ("image", "image_url")
            for part in self.content
        )


class CompletionRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)
    model: str = ""
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stream: bool = False
    tools: list[dict[str, Any]] | None = None
    tool_choice: str | dict[str, Any] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "model": "gpt-4o",
                    "messages": [{"role": "user", "content": "Hello"}],
                    "temperature": 0.7,
                    "max_tokens": 256,
                }
            ]
        }
    }


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, prompt: int | None, completion: int | None) -> "Usage":
        prompt = prompt or 0
        completion = completion or 0
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)


class Choice(BaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class CompletionResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    object: str = "chat.completion"
    created: int = Field(default_factory=_now)
    model: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None

    @property
    def content(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.text()


class Delta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: str | None = None
    content: str | None = None
    tool_calls: list[dict[str, Any]] | None = None


class ChunkChoice(BaseModel):
    index: int = 0
    delta: Delta = Field(default_factory=Delta)
    finish_reason: str | None = None


class StreamChunk(BaseModel):
    """A CompletionResponse-shaped delta produced while streaming."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    object: str = "chat.completion.chunk"
    created: int = Field(default_factory=_now)
    model: str = ""
    choices: list[ChunkChoice] = Field(default_factory=list)
    usage: Usage | None = None

    @classmethod
    def from_text(
        cls,
        content: str,
        *,
        model: str,
        id: str = "",
        finish_reason: str | None = None,
        usage: Usage | None = None,
    ) -> "StreamChunk":
        return cls(
            id=id,
            model=model,
            choices=[ChunkChoice(delta=Delta(content=content), finish_reason=finish_reason)],
            usage=usage,
        )

    @property
    def content(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].delta.content or ""
