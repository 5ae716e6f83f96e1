from types import SimpleNamespace

import pytest

from exam_grader.core.errors import OracleRefusal, OracleUnavailable
from exam_grader.services import oracle as oracle_module
from exam_grader.services.oracle import GeminiOracle, OracleFile


def response(text="SCORE: 9/10", finish="STOP", block_reason=0, candidates=True):
    return SimpleNamespace(
        prompt_feedback=SimpleNamespace(block_reason=block_reason),
        candidates=[SimpleNamespace(finish_reason=SimpleNamespace(name=finish))] if candidates else [],
        text=text,
    )


class TextlessResponse:
    prompt_feedback = None
    candidates = [SimpleNamespace(finish_reason=SimpleNamespace(name="STOP"))]

    @property
    def text(self):
        raise ValueError("no text parts")


@pytest.fixture()
def fake_model(monkeypatch):
    state = SimpleNamespace(reply=response(), error=None, created=[], parts=None)

    class FakeModel:
        def __init__(self, **kwargs):
            state.created.append(kwargs)

        def generate_content(self, parts):
            state.parts = parts
            if state.error is not None:
                raise state.error
            return state.reply

    monkeypatch.setattr(oracle_module.genai, "GenerativeModel", FakeModel)
    return state


def test_generate_returns_reply_text(fake_model):
    reply = GeminiOracle().generate(
        "Grade this",
        file=OracleFile(data=b"%PDF", mime_type="application/pdf"),
        model_id="gemini-1.5-pro",
        system_prompt="Be strict.",
    )

    assert reply == "SCORE: 9/10"
    created = fake_model.created[0]
    assert created["model_name"] == "gemini-1.5-pro"
    assert created["system_instruction"] == "Be strict."
    assert created["safety_settings"] == oracle_module.SAFETY_SETTINGS
    assert fake_model.parts == ["Grade this", {"mime_type": "application/pdf", "data": b"%PDF"}]


def test_default_model_is_used(fake_model):
    GeminiOracle().generate("Grade this")
    assert fake_model.created[0]["model_name"] == "gemini-2.0-flash"
    assert fake_model.parts == ["Grade this"]


def test_transport_failure_is_unavailable(fake_model):
    fake_model.error = RuntimeError("deadline exceeded")
    with pytest.raises(OracleUnavailable):
        GeminiOracle().generate("Grade this")


@pytest.mark.parametrize(
    "reply",
    [
        response(finish="SAFETY"),
        response(block_reason=2),
        response(candidates=False),
        TextlessResponse(),
    ],
)
def test_blocked_replies_are_refusals(fake_model, reply):
    fake_model.reply = reply
    with pytest.raises(OracleRefusal):
        GeminiOracle().generate("Grade this")
