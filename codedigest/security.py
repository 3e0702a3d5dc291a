from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from .diagnostics import get_logger

DEFAULT_PLACEHOLDER = "[REDACTED]"
ENTROPY_THRESHOLD = 3.5

_REGEX_META_RE = re.compile(r"[.\\^$*+?()\[\]{}|]")
_SLASH_FORM_RE = re.compile(r"^/(.*)/([imsx]*)$", re.DOTALL)
_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}

logger = get_logger(__name__)


@dataclass(frozen=True)
class RedactionResult:
    applied: bool
    content: str


class Redactor(Protocol):
    def redact(self, content: str) -> RedactionResult: ...


@dataclass(frozen=True)
class RedactionRule:
    name: str
    pattern: re.Pattern[str]
    # Capture group replaced by the placeholder; 0 is the whole match.
    group: int = 0
    # When set, only lines containing one of these keywords are touched.
    context: tuple[str, ...] = ()
    check_entropy: bool = False


DEFAULT_RULES: tuple[RedactionRule, ...] = (
    RedactionRule(
        name="aws-access-key-id",
        pattern=re.compile(r"\b((?:AKIA|ASIA)[0-9A-Z]{16})\b"),
    ),
    RedactionRule(
        name="private-key",
        pattern=re.compile(r"-----BEGIN\s+[A-Z ]*PRIVATE KEY-----"),
    ),
    RedactionRule(
        name="jwt",
        pattern=re.compile(
            r"(eyJ[A-Za-z0-9_=-]+\.[A-Za-z0-9_=-]+\.[A-Za-z0-9_.+/=-]+)"
        ),
    ),
    RedactionRule(
        name="generic-api-key",
        pattern=re.compile(
            r"(key|token|secret|password|passwd|pw)\s*[:=]\s*['\"]?"
            r"([A-Za-z0-9/+=_-]{16,})['\"]?",
            re.IGNORECASE,
        ),
        group=2,
    ),
    RedactionRule(
        name="high-entropy-string",
        pattern=re.compile(r"['\"]?([A-Za-z0-9/+=_-]{20,})['\"]?"),
        group=1,
        context=("secret", "token", "key", "auth", "bearer", "password", "apikey"),
        check_entropy=True,
    ),
)


def shannon_entropy(text: str) -> float:
    if not text:
        return 0.0
    n = len(text)
    return -sum((c / n) * math.log2(c / n) for c in Counter(text).values())


def compile_user_pattern(raw: str, index: int = 0) -> RedactionRule | None:
    """Compile a user supplied pattern: ``/re/flags``, a bare regex, or a literal."""
    text = raw.strip()
    if not text:
        return None
    name = f"user-{index + 1}"
    m = _SLASH_FORM_RE.match(text)
    try:
        if m:
            flags = 0
            for ch in m.group(2):
                flags |= _FLAG_MAP[ch]
            return RedactionRule(name=name, pattern=re.compile(m.group(1), flags))
        if _REGEX_META_RE.search(text):
            return RedactionRule(name=name, pattern=re.compile(text))
    except re.error as e:
        logger.warning("redaction_pattern_invalid", pattern=text, error=str(e))
        return None
    return RedactionRule(name=name, pattern=re.compile(re.escape(text)))


def _is_exempt(target: str) -> bool:
    # Path fragments and booleans look random but are never secrets.
    return "/" in target or "\\" in target or target.lower() in {"true", "false"}


class SecretRedactor:
    """Line oriented, rule based secret scrubber."""

    def __init__(
        self,
        rules: Sequence[RedactionRule] = DEFAULT_RULES,
        *,
        placeholder: str = DEFAULT_PLACEHOLDER,
        show_redacted: bool = False,
    ) -> None:
        self.rules = tuple(rules)
        self.placeholder = placeholder or DEFAULT_PLACEHOLDER
        self.show_redacted = show_redacted

    def _redact_line(self, line: str, rule: RedactionRule) -> tuple[str, bool]:
        matches = list(rule.pattern.finditer(line))
        if not matches:
            return line, False
        if rule.context:
            lowered = line.lower()
            if not any(k in lowered for k in rule.context):
                return line, False

        applied = False
        out = line
        for m in matches:
            target = m.group(rule.group)
            if not target:
                continue
            if rule.check_entropy and shannon_entropy(target) < ENTROPY_THRESHOLD:
                continue
            if _is_exempt(target):
                continue
            if target in out:
                out = out.replace(target, self.placeholder)
                applied = True
        return out, applied

    def redact(self, content: str) -> RedactionResult:
        if self.show_redacted or not content:
            return RedactionResult(applied=False, content=content)

        applied = False
        lines = content.split("\n")
        for rule in self.rules:
            for i, line in enumerate(lines):
                new_line, hit = self._redact_line(line, rule)
                if hit:
                    lines[i] = new_line
                    applied = True
        return RedactionResult(applied=applied, content="\n".join(lines))


def build_redactor(
    patterns: Iterable[str] | None = None,
    *,
    placeholder: str = DEFAULT_PLACEHOLDER,
    show_redacted: bool = False,
) -> SecretRedactor:
    """User patterns run before the built-in rules."""
    user_rules: list[RedactionRule] = []
    for idx, raw in enumerate(patterns or []):
        rule = compile_user_pattern(str(raw), idx)
        if rule is not None:
            user_rules.append(rule)
    return SecretRedactor(
        (*user_rules, *DEFAULT_RULES),
        placeholder=placeholder,
        show_redacted=show_redacted,
    )
