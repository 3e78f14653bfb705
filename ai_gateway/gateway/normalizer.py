"""Response Normalizer: post-processes adapter results.

Applies final checks after the provider adapter returns:
  - Validates the result shape (content, tokens, model, provider)
  - Ensures token totals are consistent
  - Strips surrounding whitespace from the content
"""

from __future__ import annotations

import logging
from dataclasses import replace

from ai_gateway.core.exceptions import MalformedResultError
from ai_gateway.gateway.types import NormalizedResult, TokenUsage

logger = logging.getLogger(__name__)


def normalize_result(result: NormalizedResult) -> NormalizedResult:
    """Validate and normalize an adapter result.

    Idempotent. Raises MalformedResultError (retryable) when a required field
    is missing; ``content`` may be empty only when tool calls are present.
    """
    if not isinstance(result, NormalizedResult):
        raise MalformedResultError(
            f"Provider response is not a NormalizedResult: {type(result).__name__}"
        )
    if not isinstance(result.tokens, TokenUsage):
        raise MalformedResultError("Provider response missing tokens", provider=result.provider)
    if not result.model:
        raise MalformedResultError("Provider response missing model", provider=result.provider)
    if not result.provider:
        raise MalformedResultError("Provider response missing provider")
    if not isinstance(result.content, str):
        raise MalformedResultError("Provider response missing content", provider=result.provider)

    content = result.content.strip()
    if not content and not result.tool_calls and not result.function_call:
        raise MalformedResultError("Provider response has empty content", provider=result.provider)

    tokens = result.tokens
    if tokens.total < tokens.prompt + tokens.completion:
        tokens = replace(tokens, total=tokens.prompt + tokens.completion)

    if content == result.content and tokens is result.tokens:
        return result
    return replace(result, content=content, tokens=tokens)
