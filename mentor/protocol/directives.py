"""
Metadata Directive Codec

Profesor Mentis talks to the system through HTML-comment markers appended to
its reply:

    <!-- MENTIS_ADD_POINTS=2 -->
    <!-- MENTIS_PHASE=solving -->
    <!-- MENTIS_CONTEXT={"topic": "fracciones", "isExercise": true} -->

`decode_reply` strips every marker from the visible text (valid or not) and
returns one tolerant outcome per directive kind. It never raises.
"""

import json
import re
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from mentor.models.conversation import ConversationContext, ConversationPhase

POINTS_MIN = 0
POINTS_MAX = 10

POINTS_PATTERN = re.compile(r"<!--\s*MENTIS_ADD_POINTS\s*=\s*(.*?)\s*-->", re.DOTALL)
PHASE_PATTERN = re.compile(r"<!--\s*MENTIS_PHASE\s*=\s*(.*?)\s*-->", re.DOTALL)
# A JSON object payload closes at "}" + "-->", so "-->" inside a string value stays in the payload
CONTEXT_PATTERN = re.compile(
    r"<!--\s*MENTIS_CONTEXT\s*=\s*(\{.*?\}(?=\s*-->)|.*?)\s*-->", re.DOTALL
)

# Extraction order: points first, then phase, then context
_PATTERNS = (POINTS_PATTERN, PHASE_PATTERN, CONTEXT_PATTERN)

# A marker cut off before its closing "-->" (truncated completion)
DANGLING_PATTERN = re.compile(r"<!--\s*MENTIS_[A-Z_]*.*\Z", re.DOTALL)

T = TypeVar("T")


class DirectiveStatus(str, Enum):
    PRESENT = "present"
    MALFORMED = "malformed"
    ABSENT = "absent"


class Directive(BaseModel, Generic[T]):
    """Outcome of decoding one directive kind."""

    status: DirectiveStatus = DirectiveStatus.ABSENT
    value: Optional[T] = None
    raw: Optional[str] = None

    @property
    def is_present(self) -> bool:
        return self.status == DirectiveStatus.PRESENT


class DecodedReply(BaseModel):
    """Visible reply plus the decoded directives."""

    reply: str
    points: Directive[int] = Field(default_factory=Directive[int])
    phase: Directive[ConversationPhase] = Field(default_factory=Directive[ConversationPhase])
    context: Directive[ConversationContext] = Field(default_factory=Directive[ConversationContext])

    @property
    def has_directives(self) -> bool:
        return any(
            d.status != DirectiveStatus.ABSENT
            for d in (self.points, self.phase, self.context)
        )

    @property
    def points_awarded(self) -> int:
        return self.points.value if self.points.is_present else 0

    @property
    def next_phase(self) -> Optional[ConversationPhase]:
        return self.phase.value if self.phase.is_present else None

    @property
    def context_update(self) -> Optional[ConversationContext]:
        return self.context.value if self.context.is_present else None


def clamp_points(value: int) -> int:
    return max(POINTS_MIN, min(POINTS_MAX, value))


def _last_payload(pattern: re.Pattern, text: str) -> Optional[str]:
    matches = pattern.findall(text)
    return matches[-1] if matches else None


def _decode_points(raw: Optional[str]) -> Directive[int]:
    if raw is None:
        return Directive[int]()
    try:
        value = int(raw.strip())
    except ValueError:
        return Directive[int](status=DirectiveStatus.MALFORMED, raw=raw)
    return Directive[int](status=DirectiveStatus.PRESENT, value=clamp_points(value), raw=raw)


def _decode_phase(raw: Optional[str]) -> Directive[ConversationPhase]:
    if raw is None:
        return Directive[ConversationPhase]()
    phase = ConversationPhase.parse(raw)
    if phase is None:
        return Directive[ConversationPhase](status=DirectiveStatus.MALFORMED, raw=raw)
    return Directive[ConversationPhase](status=DirectiveStatus.PRESENT, value=phase, raw=raw)


def _decode_context(raw: Optional[str]) -> Directive[ConversationContext]:
    if raw is None:
        return Directive[ConversationContext]()
    try:
        payload: Any = json.loads(raw.strip())
    except (json.JSONDecodeError, TypeError):
        return Directive[ConversationContext](status=DirectiveStatus.MALFORMED, raw=raw)
    if not isinstance(payload, dict):
        return Directive[ConversationContext](status=DirectiveStatus.MALFORMED, raw=raw)
    try:
        update = ConversationContext.model_validate(payload)
    except ValidationError:
        return Directive[ConversationContext](status=DirectiveStatus.MALFORMED, raw=raw)
    if not update.model_fields_set:
        # Valid JSON but nothing we know how to apply
        return Directive[ConversationContext](status=DirectiveStatus.MALFORMED, raw=raw)
    return Directive[ConversationContext](status=DirectiveStatus.PRESENT, value=update, raw=raw)


def strip_directives(text: str) -> str:
    """Remove every directive marker. Text without markers is returned unchanged."""
    if not any(pattern.search(text) for pattern in (*_PATTERNS, DANGLING_PATTERN)):
        return text
    cleaned = text
    for pattern in _PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = DANGLING_PATTERN.sub("", cleaned)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def decode_reply(raw_reply: Optional[str]) -> DecodedReply:
    """
    Decode the tutor's raw reply.

    When a directive appears more than once the last occurrence wins. Malformed
    directives are reported as MALFORMED and never applied.
    """
    text = raw_reply or ""
    return DecodedReply(
        reply=strip_directives(text),
        points=_decode_points(_last_payload(POINTS_PATTERN, text)),
        phase=_decode_phase(_last_payload(PHASE_PATTERN, text)),
        context=_decode_context(_last_payload(CONTEXT_PATTERN, text)),
    )
