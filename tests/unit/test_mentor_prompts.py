"""Unit tests for the Profesor Mentis prompt builder and prompt templates."""

import pytest

from mentor.exceptions import PromptTemplateError
from mentor.models.conversation import ConversationContext, ConversationPhase
from mentor.prompts.mentor_prompts import (
    HINT_INSTRUCTION,
    PHASE_INSTRUCTIONS,
    RULES,
    TEACHER_PROMPT_MAX_LENGTH,
    build_mentor_system_prompt,
    context_summary,
    get_initial_greeting,
)
from mentor.prompts.templates import PromptTemplate, format_transcript

CONTEXT = ConversationContext(subject="MATHS", topic="áreas", is_exercise=True)


# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------

class TestBuildMentorSystemPrompt:
    @pytest.mark.parametrize("phase", list(ConversationPhase))
    def test_rules_always_present(self, phase):
        for hint in (False, True):
            prompt = build_mentor_system_prompt(phase, CONTEXT, requesting_hint=hint)
            assert RULES in prompt
            assert "MENTIS_ADD_POINTS=N" in prompt
            assert f"Fase actual: {phase.value}" in prompt

    def test_each_phase_has_its_own_block(self):
        prompts = {
            phase: build_mentor_system_prompt(phase, CONTEXT) for phase in ConversationPhase
        }
        assert len(set(prompts.values())) == len(ConversationPhase)
        assert "FASE INICIO" in prompts[ConversationPhase.IDLE]
        assert "FASE MODO PROFESOR" in prompts[ConversationPhase.SOLVING]

    def test_defining_context_shows_context_directive(self):
        prompt = build_mentor_system_prompt(ConversationPhase.DEFINING_CONTEXT, CONTEXT)
        assert '<!-- MENTIS_CONTEXT={"topic":"tema concreto","isExercise":true} -->' in prompt

    def test_hint_replaces_phase_block(self):
        prompt = build_mentor_system_prompt(ConversationPhase.SOLVING, CONTEXT, requesting_hint=True)
        assert HINT_INSTRUCTION in prompt
        assert PHASE_INSTRUCTIONS[ConversationPhase.SOLVING] not in prompt

    def test_giving_hint_resumes_previous_phase(self):
        prompt = build_mentor_system_prompt(
            ConversationPhase.GIVING_HINT, CONTEXT, resume_phase=ConversationPhase.WAITING_FOR_CORRECTION
        )
        assert "<!-- MENTIS_PHASE=waiting_for_correction -->" in prompt

    def test_giving_hint_defaults_to_solving(self):
        prompt = build_mentor_system_prompt(ConversationPhase.GIVING_HINT, CONTEXT)
        assert "<!-- MENTIS_PHASE=solving -->" in prompt

    def test_teacher_guidance_is_trimmed_and_bounded(self):
        guidance = "  " + "a" * (TEACHER_PROMPT_MAX_LENGTH + 200) + "  "
        prompt = build_mentor_system_prompt(ConversationPhase.SOLVING, CONTEXT, teacher_prompt=guidance)

        assert "Indicaciones del profesor" in prompt
        assert "a" * TEACHER_PROMPT_MAX_LENGTH in prompt
        assert "a" * (TEACHER_PROMPT_MAX_LENGTH + 1) not in prompt

    @pytest.mark.parametrize("teacher_prompt", [None, "", "   "])
    def test_no_teacher_block_without_guidance(self, teacher_prompt):
        prompt = build_mentor_system_prompt(ConversationPhase.SOLVING, CONTEXT, teacher_prompt=teacher_prompt)
        assert "Indicaciones del profesor" not in prompt

    def test_no_implementation_details_leak(self):
        for phase in ConversationPhase:
            prompt = build_mentor_system_prompt(phase, CONTEXT, teacher_prompt="Más ejemplos")
            for word in ("LLM", "OpenRouter", "Python", "modelo de lenguaje"):
                assert word not in prompt


class TestContextSummary:
    def test_full_context(self):
        context = CONTEXT.model_copy(update={"exercise_description": "Cuadrado de lado 3"})
        assert context_summary(context) == (
            "Asignatura: MATHS. Tema: áreas. Tipo: ejercicio concreto. Ejercicio actual: Cuadrado de lado 3"
        )

    def test_review(self):
        assert context_summary(ConversationContext(is_exercise=False)) == "Tipo: repaso general"

    def test_empty(self):
        assert context_summary(ConversationContext()) == "Sin contexto aún."


class TestInitialGreeting:
    def test_with_subject(self):
        assert get_initial_greeting(" Física ") == "Hola 👋 Tienes elegida Física. ¿Qué tema quieres trabajar hoy?"

    @pytest.mark.parametrize("subject", [None, "", "  "])
    def test_without_subject(self, subject):
        assert get_initial_greeting(subject) == "Hola 👋 ¿Qué quieres trabajar hoy con Mentis?"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class TestPromptTemplate:
    def test_render(self):
        template = PromptTemplate("Hola {name}, fase {phase}", name="greet")
        assert template.required_vars == {"name", "phase"}
        assert template.render(name="Ana", phase="idle") == "Hola Ana, fase idle"

    def test_defaults(self):
        template = PromptTemplate("{a}-{b}", defaults={"b": "x"})
        assert template.render(a="1") == "1-x"

    def test_missing_variables(self):
        with pytest.raises(PromptTemplateError) as exc_info:
            PromptTemplate("{a} {b}", name="t").render(a="1")
        assert exc_info.value.missing_vars == ["b"]

    def test_format_transcript(self):
        transcript = format_transcript([
            {"role": "user", "content": "hola"},
            {"role": "assistant", "content": "¿Qué tema?"},
        ])
        assert transcript == "Estudiante: hola\n\nMentis: ¿Qué tema?"
