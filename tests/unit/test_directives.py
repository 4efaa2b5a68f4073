"""
Unit tests for the metadata directive codec.

Covers marker stripping, point clamping, phase parsing, tolerant context
decoding, last-occurrence-wins and the no-directive identity case.
"""

import pytest

from mentor.models.conversation import ConversationPhase
from mentor.protocol.directives import (
    DirectiveStatus,
    clamp_points,
    decode_reply,
    strip_directives,
)


def _reply(points=None, phase=None, context=None, text="Muy bien, sigue así."):
    parts = [text]
    if points is not None:
        parts.append(f"<!-- MENTIS_ADD_POINTS={points} -->")
    if phase is not None:
        parts.append(f"<!-- MENTIS_PHASE={phase} -->")
    if context is not None:
        parts.append(f"<!-- MENTIS_CONTEXT={context} -->")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Stripping
# ---------------------------------------------------------------------------

class TestStripping:
    @pytest.mark.parametrize("points", [-5, 0, 2, 10, 15, "abc"])
    @pytest.mark.parametrize("phase", ["solving", "not_a_phase", None])
    @pytest.mark.parametrize("context", ['{"topic": "áreas"}', '{"topic": ', None])
    def test_markers_never_leak(self, points, phase, context):
        decoded = decode_reply(_reply(points, phase, context))
        assert "MENTIS_" not in decoded.reply
        assert "<!--" not in decoded.reply
        assert decoded.reply == "Muy bien, sigue así."

    def test_reply_without_markers_is_unchanged(self):
        text = "  ¿Qué tema quieres trabajar?\n\nPiensa en el lado.  "
        decoded = decode_reply(text)
        assert decoded.reply == text
        assert decoded.has_directives is False
        assert decoded.points.status == DirectiveStatus.ABSENT
        assert decoded.phase.status == DirectiveStatus.ABSENT
        assert decoded.context.status == DirectiveStatus.ABSENT

    def test_decoding_cleaned_reply_is_idempotent(self):
        first = decode_reply(_reply(2, "evaluating", '{"topic": "fracciones"}'))
        second = decode_reply(first.reply)
        assert second.reply == first.reply
        assert second.has_directives is False

    def test_dangling_marker_is_stripped(self):
        decoded = decode_reply('Revisa el primer paso.\n<!-- MENTIS_CONTEXT={"topic": "are')
        assert decoded.reply == "Revisa el primer paso."
        assert decoded.context.status == DirectiveStatus.ABSENT

    def test_other_html_comments_are_kept(self):
        text = "Hola <!-- nota --> adiós"
        assert strip_directives(text) == text

    def test_none_reply_decodes_to_empty(self):
        decoded = decode_reply(None)
        assert decoded.reply == ""
        assert decoded.has_directives is False


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------

class TestPoints:
    @pytest.mark.parametrize("raw,expected", [
        (-5, 0), (-1, 0), (0, 0), (1, 1), (2, 2), (10, 10), (11, 10), (15, 10),
    ])
    def test_points_are_clamped(self, raw, expected):
        decoded = decode_reply(_reply(points=raw))
        assert decoded.points.status == DirectiveStatus.PRESENT
        assert decoded.points_awarded == expected

    def test_non_numeric_points_are_malformed(self):
        decoded = decode_reply(_reply(points="dos"))
        assert decoded.points.status == DirectiveStatus.MALFORMED
        assert decoded.points_awarded == 0

    def test_absent_points_award_nothing(self):
        assert decode_reply(_reply()).points_awarded == 0

    def test_last_points_marker_wins(self):
        text = "Bien.<!-- MENTIS_ADD_POINTS=1 -->\n<!-- MENTIS_ADD_POINTS=2 -->"
        assert decode_reply(text).points_awarded == 2

    def test_clamp_points(self):
        assert clamp_points(-3) == 0
        assert clamp_points(7) == 7
        assert clamp_points(99) == 10


# ---------------------------------------------------------------------------
# Phase
# ---------------------------------------------------------------------------

class TestPhase:
    @pytest.mark.parametrize("phase", list(ConversationPhase))
    def test_every_phase_is_recognised(self, phase):
        decoded = decode_reply(_reply(phase=phase.value))
        assert decoded.next_phase == phase

    def test_phase_is_case_and_space_tolerant(self):
        decoded = decode_reply("Ok <!--MENTIS_PHASE=  Solving  -->")
        assert decoded.next_phase == ConversationPhase.SOLVING

    def test_unknown_phase_is_malformed(self):
        decoded = decode_reply(_reply(phase="thinking"))
        assert decoded.phase.status == DirectiveStatus.MALFORMED
        assert decoded.next_phase is None


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

class TestContext:
    def test_valid_context_uses_wire_aliases(self):
        decoded = decode_reply(_reply(context='{"topic": "fracciones", "isExercise": true}'))
        update = decoded.context_update
        assert update is not None
        assert update.topic == "fracciones"
        assert update.is_exercise is True
        assert update.model_fields_set == {"topic", "is_exercise"}

    @pytest.mark.parametrize("payload", [
        '{"topic": ',
        "no es json",
        "[1, 2]",
        '"fracciones"',
        '{"isExercise": "quizás"}',
        "{}",
        '{"unknown": 1}',
    ])
    def test_malformed_context_is_ignored(self, payload):
        decoded = decode_reply(_reply(context=payload))
        assert decoded.context.status == DirectiveStatus.MALFORMED
        assert decoded.context_update is None

    def test_malformed_context_does_not_affect_other_directives(self):
        decoded = decode_reply(_reply(points=2, phase="solving", context="{roto"))
        assert decoded.points_awarded == 2
        assert decoded.next_phase == ConversationPhase.SOLVING
        assert decoded.context_update is None

    def test_closing_marker_inside_json_string(self):
        decoded = decode_reply(
            'Vamos allá.<!-- MENTIS_CONTEXT={"topic":"flechas -->","isExercise":true} -->'
        )
        assert decoded.reply == "Vamos allá."
        assert decoded.context.status == DirectiveStatus.PRESENT
        assert decoded.context_update.topic == "flechas -->"
        assert decoded.context_update.is_exercise is True

    def test_closing_marker_inside_json_string_before_other_markers(self):
        text = (
            'Bien.\n<!-- MENTIS_CONTEXT={"exerciseDescription": "a --> b"} -->\n'
            "<!-- MENTIS_PHASE=solving -->"
        )
        decoded = decode_reply(text)
        assert decoded.reply == "Bien."
        assert decoded.context_update.exercise_description == "a --> b"
        assert decoded.next_phase == ConversationPhase.SOLVING

    def test_multiline_context_payload(self):
        text = 'Vale.\n<!-- MENTIS_CONTEXT={\n  "topic": "áreas",\n  "isExercise": false\n} -->'
        decoded = decode_reply(text)
        assert decoded.reply == "Vale."
        assert decoded.context_update.topic == "áreas"
        assert decoded.context_update.is_exercise is False
