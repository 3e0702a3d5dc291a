from __future__ import annotations

import hashlib
import math
import re
import threading
from collections.abc import Mapping
from typing import Any

import tiktoken

from .diagnostics import get_logger

DEFAULT_MODEL = "chars-approx"
DEFAULT_DIVISOR = 4.0

DEFAULT_DIVISORS: dict[str, float] = {
    "chars-approx": 4,
    "gpt-4o": 4,
    "gpt-4o-mini": 4,
    "gpt-3.5": 4,
    "claude-3.5": 4,
    "claude-2.1": 4,
    "claude-2": 4,
    "o1": 4,
}

# Models counted with a real BPE encoder instead of the divisor heuristic.
MODEL_ENCODINGS: dict[str, str] = {
    "tiktoken": "o200k_base",
    "o200k": "o200k_base",
    "cl100k": "cl100k_base",
}

_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT_RE = re.compile(r"(?<!:)//.*$", re.MULTILINE)
_HASH_COMMENT_RE = re.compile(r"^\s*#.*$", re.MULTILINE)

_ENCODER_CACHE: dict[str, Any] = {}
_FAILED_ENCODINGS: set[str] = set()
_ENCODER_CACHE_LOCK = threading.Lock()
_TOKEN_COUNT_CACHE: dict[tuple[str, str], int] = {}
_TOKEN_COUNT_CACHE_LOCK = threading.Lock()

logger = get_logger(__name__)


def _approx_tokens(length: float, divisor: float) -> int:
    return math.ceil(length / divisor) if length > 0 else 0


def _content_sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def encoding_for_model(model: str | None) -> str | None:
    if not model:
        return None
    if model.startswith("tiktoken:"):
        return model.split(":", 1)[1] or None
    return MODEL_ENCODINGS.get(model)


def _get_encoder(name: str) -> Any | None:
    with _ENCODER_CACHE_LOCK:
        if name in _FAILED_ENCODINGS:
            return None
        enc = _ENCODER_CACHE.get(name)
        if enc is None:
            try:
                enc = tiktoken.get_encoding(name)
            except Exception as e:  # noqa: BLE001
                logger.warning("token_encoder_unavailable", encoding=name, error=repr(e))
                _FAILED_ENCODINGS.add(name)
                return None
            _ENCODER_CACHE[name] = enc
    return enc


def _comment_weighted_length(text: str, weight: float) -> float:
    comments = 0
    for regex in (_BLOCK_COMMENT_RE, _LINE_COMMENT_RE, _HASH_COMMENT_RE):
        comments += sum(len(m.group(0)) for m in regex.finditer(text))
    comments = max(0, min(comments, len(text)))
    return (len(text) - comments) + weight * comments


class TokenAnalyzer:
    """Estimates token counts; never raises for any (text, model) input."""

    def __init__(self, divisor_overrides: Mapping[str, float] | None = None) -> None:
        self.divisor_overrides = dict(divisor_overrides or {})

    def _divisor(self, model: str, overrides: Mapping[str, float]) -> float:
        divisors = {**DEFAULT_DIVISORS, **self.divisor_overrides, **overrides}
        raw = divisors.get(model) or divisors.get(DEFAULT_MODEL) or DEFAULT_DIVISOR
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return DEFAULT_DIVISOR
        return value if value > 0 else DEFAULT_DIVISOR

    def _encode_count(self, encoding: str, text: str) -> int | None:
        key = (encoding, _content_sha256(text))
        with _TOKEN_COUNT_CACHE_LOCK:
            cached = _TOKEN_COUNT_CACHE.get(key)
        if cached is not None:
            return cached

        enc = _get_encoder(encoding)
        if enc is None:
            return None
        try:
            result = len(enc.encode(text, disallowed_special=()))
        except Exception as e:  # noqa: BLE001
            logger.warning("token_encode_failed", encoding=encoding, error=repr(e))
            return None

        with _TOKEN_COUNT_CACHE_LOCK:
            _TOKEN_COUNT_CACHE[key] = result
        return result

    def estimate(
        self,
        text: str,
        model: str | None = None,
        divisor_overrides: Mapping[str, float] | None = None,
    ) -> int:
        if not text:
            return 0
        model = model or DEFAULT_MODEL
        overrides = divisor_overrides or {}

        encoding = encoding_for_model(model)
        if encoding is not None:
            counted = self._encode_count(encoding, text)
            if counted is not None:
                return counted

        divisor = self._divisor(model, overrides)
        try:
            weight = float(
                overrides.get("commentWeight", self.divisor_overrides.get("commentWeight", 1))
            )
        except (TypeError, ValueError):
            weight = 1.0
        length: float = len(text)
        if weight != 1:
            length = _comment_weighted_length(text, weight)
        return _approx_tokens(length, divisor)


def format_estimate(n: int) -> str:
    if n < 1000:
        return str(n)
    if n < 1_000_000:
        return f"{n / 1000:.1f}".removesuffix(".0") + "k"
    return f"{n / 1_000_000:.1f}".removesuffix(".0") + "M"


def warn_if_exceeds_limit(estimate: int, limit: int | None) -> str | None:
    if limit and estimate > limit:
        return (
            f"Token estimate {format_estimate(estimate)} exceeds context limit "
            f"({format_estimate(limit)})."
        )
    return None
