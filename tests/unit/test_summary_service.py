"""Unit tests for LearningSummaryService."""

import pytest
from unittest.mock import Mock, patch

from sqlalchemy.exc import OperationalError

from mentor.services.summary_service import LearningSummaryService
from shared.models import ChatMessage
from shared.repositories import SummaryRepository
from shared.services.llm_service import LLMServiceError
from shared.utils.exceptions import LLMProviderException

TRANSCRIPT = [
    ChatMessage(role="user", content="quiero repasar áreas"),
    ChatMessage(role="assistant", content="¿Cuál es el área de un cuadrado de lado 3?"),
    ChatMessage(role="user", content="9"),
]


def _llm(reply="Has repasado el área del cuadrado.\n- El área depende del lado al cuadrado."):
    llm = Mock()
    llm.model_id = "test-model"
    llm.chat = Mock(return_value=reply)
    return llm


class TestGenerate:
    def test_summary_is_generated_and_stored(self, db_session):
        llm = _llm()
        service = LearningSummaryService(db_session, llm=llm)

        response = service.generate("alice", TRANSCRIPT, source_id="c-1")

        assert response.summary.startswith("Has repasado el área")
        assert response.summary_id is not None
        stored = SummaryRepository(db_session).latest_for_student("alice")
        assert stored.id == response.summary_id
        assert stored.source_id == "c-1"

        system, user = llm.chat.call_args.args[0]
        assert system["role"] == "system"
        assert "MINI RESUMEN" in system["content"]
        assert "Estudiante: quiero repasar áreas" in user["content"]
        assert "Mentis: ¿Cuál es el área" in user["content"]

    def test_accepts_plain_dict_messages(self, db_session):
        service = LearningSummaryService(db_session, llm=_llm())
        response = service.generate("alice", [{"role": "user", "content": "hola"}])
        assert response.summary

    def test_empty_transcript_is_rejected(self, db_session):
        llm = _llm()
        with pytest.raises(ValueError):
            LearningSummaryService(db_session, llm=llm).generate("alice", [])
        llm.chat.assert_not_called()

    def test_provider_failure(self, db_session):
        llm = _llm()
        llm.chat.side_effect = LLMServiceError("provider down")

        with pytest.raises(LLMProviderException):
            LearningSummaryService(db_session, llm=llm).generate("alice", TRANSCRIPT)
        assert SummaryRepository(db_session).latest_for_student("alice") is None

    def test_empty_completion_is_a_provider_failure(self, db_session):
        with pytest.raises(LLMProviderException):
            LearningSummaryService(db_session, llm=_llm("  ")).generate("alice", TRANSCRIPT)

    def test_storage_failure_still_returns_summary(self, db_session):
        service = LearningSummaryService(db_session, llm=_llm("Resumen."))

        with patch.object(
            SummaryRepository, "append",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            response = service.generate("alice", TRANSCRIPT)

        assert response.summary == "Resumen."
        assert response.summary_id is None
