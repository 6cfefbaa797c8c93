"""Pydantic model for provider token accounting."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Tokens consumed by one or more provider calls."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any] | None) -> TokenUsage:
        """Build from a langchain ``usage_metadata`` dict (missing keys count as 0)."""
        if not metadata:
            return cls()
        return cls(
            input_tokens=metadata.get("input_tokens", 0) or 0,
            output_tokens=metadata.get("output_tokens", 0) or 0,
            total_tokens=metadata.get("total_tokens", 0) or 0,
        )
