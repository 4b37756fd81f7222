import pytest

from zerpha.services.llm.orchestrator import LLMOrchestrator
from zerpha.services.llm.types import (
    LLMOrchestrationError,
    LLMProviderError,
    LLMRequest,
    LLMStage,
    classify_retryable_error,
)


class _FakeProvider:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def generate(self, *, model: str, prompt: str, timeout_seconds: int, **kwargs):
        self.calls.append({"model": model, "prompt": prompt, **kwargs})
        if not self._responses:
            return ""
        nxt = self._responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return str(nxt)


def test_orchestrator_falls_back_to_next_provider(monkeypatch):
    orchestrator = LLMOrchestrator()
    monkeypatch.setattr(orchestrator._settings, "stage_retry_backoff_seconds", 0)
    routes = [("anthropic", "claude-sonnet-4-5"), ("openai", "gpt-4.1-mini")]
    monkeypatch.setattr(orchestrator, "_routes_for_stage", lambda _stage: routes)
    providers = {
        "anthropic": _FakeProvider([LLMProviderError("invalid request", retryable=False)]),
        "openai": _FakeProvider(['[{"name":"Acme","website":"https://acme.test","reason":"fits"}]']),
    }
    monkeypatch.setattr(orchestrator, "_provider", lambda name: providers[name])

    response = orchestrator.run_stage(
        LLMRequest(stage=LLMStage.candidate_discovery, prompt="Return JSON.", system_prompt="Be brief.")
    )
    assert response.provider == "openai"
    assert response.model == "gpt-4.1-mini"
    assert len(response.attempts) == 2
    assert response.attempts[0].provider == "anthropic"
    assert response.attempts[0].status == "terminal_error"
    assert providers["openai"].calls[0]["system_prompt"] == "Be brief."
    assert providers["openai"].calls[0]["temperature"] == 0.0


def test_orchestrator_retries_retryable_provider_errors(monkeypatch):
    orchestrator = LLMOrchestrator()
    monkeypatch.setattr(orchestrator._settings, "stage_retry_backoff_seconds", 0)
    monkeypatch.setattr(orchestrator._settings, "stage_retry_max_attempts", 2)
    monkeypatch.setattr(orchestrator, "_routes_for_stage", lambda _stage: [("gemini", "gemini-2.0-flash")])
    provider = _FakeProvider([LLMProviderError("timeout", retryable=True), '{"name":"Bravo"}'])
    monkeypatch.setattr(orchestrator, "_provider", lambda _name: provider)

    response = orchestrator.run_stage(LLMRequest(stage=LLMStage.structured_extraction, prompt="Return JSON."))
    assert response.provider == "gemini"
    assert len(response.attempts) == 2
    assert response.attempts[0].status == "retryable_error"
    assert response.attempts[1].status == "success"
    assert response.failed_attempts == 1


def test_orchestrator_raises_when_all_routes_fail(monkeypatch):
    orchestrator = LLMOrchestrator()
    monkeypatch.setattr(orchestrator._settings, "stage_retry_backoff_seconds", 0)
    monkeypatch.setattr(orchestrator, "_routes_for_stage", lambda _stage: [("gemini", "gemini-2.0-flash")])
    monkeypatch.setattr(
        orchestrator,
        "_provider",
        lambda _name: _FakeProvider([LLMProviderError("invalid request", retryable=False)]),
    )

    with pytest.raises(LLMOrchestrationError) as excinfo:
        orchestrator.run_stage(LLMRequest(stage=LLMStage.json_correction, prompt="Fix it."))
    assert excinfo.value.attempts
    assert excinfo.value.attempts[0].status == "terminal_error"
    assert excinfo.value.last_error == "invalid request"


def test_unknown_provider_is_terminal():
    orchestrator = LLMOrchestrator()
    with pytest.raises(LLMProviderError) as excinfo:
        orchestrator._provider("mystery")
    assert excinfo.value.retryable is False


def test_stage_routes_parse_provider_model_pairs(monkeypatch):
    orchestrator = LLMOrchestrator()
    monkeypatch.setattr(
        orchestrator._settings,
        "llm_stage_correction_models",
        "OpenAI:gpt-4.1-mini, bogus ,gemini:gemini-2.0-flash",
    )
    assert orchestrator._routes_for_stage("json_correction") == [
        ("openai", "gpt-4.1-mini"),
        ("gemini", "gemini-2.0-flash"),
    ]


def test_classify_retryable_error():
    assert classify_retryable_error(RuntimeError("429 Too Many Requests"))
    assert classify_retryable_error(RuntimeError("upstream overloaded"))
    assert not classify_retryable_error(ValueError("bad schema"))


@pytest.mark.asyncio
async def test_arun_stage_runs_off_the_event_loop(monkeypatch):
    orchestrator = LLMOrchestrator()
    monkeypatch.setattr(orchestrator, "_routes_for_stage", lambda _stage: [("openai", "gpt-4.1-mini")])
    monkeypatch.setattr(orchestrator, "_provider", lambda _name: _FakeProvider(["[]"]))

    response = await orchestrator.arun_stage(LLMRequest(stage=LLMStage.candidate_discovery, prompt="x"))
    assert response.text == "[]"


def test_sdk_error_class_names_are_retryable():
    class RateLimitError(Exception):
        pass

    class APIConnectionError(Exception):
        pass

    assert classify_retryable_error(RateLimitError("slow down"))
    assert classify_retryable_error(APIConnectionError("reset"))
    assert classify_retryable_error(TimeoutError())
