"""Learning summary prompt: short recap plus tips generated from a chat transcript."""

from mentor.prompts.templates import PromptTemplate


LEARNING_SUMMARY_SYSTEM_PROMPT = """Eres un asistente que resume sesiones de estudio. A partir de la conversación entre el estudiante y el tutor Mentis, escribe un MINI RESUMEN en español con:
1. En 2-3 frases: qué se ha trabajado y qué ha aprendido o practicado el estudiante.
2. Una lista corta de 3-5 tips o ideas clave que queden como recordatorio (bullets).
Sé conciso y claro. No inventes contenido que no esté en la conversación."""


LEARNING_SUMMARY_USER_PROMPT = PromptTemplate(
    """Conversación:

{transcript}

---
Genera el mini resumen y los tips.""",
    name="learning_summary_user",
)
