"""End-to-end tests for the chat HTTP API with fake planner and provider."""

import json
from typing import (
    Any,
    Dict,
    Iterator,
    List,
)

import pytest
from fastapi.testclient import TestClient

from fakes import (
    FakeProvider,
    ScriptedPlanner,
    call,
)
from finsight.agent.planner_interface import PlannerDecision
from finsight.api.app import (
    app,
    get_fmp_client,
    get_planner,
)

QUESTION = {"messages": [{"role": "user", "content": "How is Airbnb's stock doing?"}]}


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider({"/quote": [{"symbol": "ABNB", "price": 131.5}]})


@pytest.fixture
def planner() -> ScriptedPlanner:
    return ScriptedPlanner(
        [PlannerDecision(tool_calls=[call("getQuote", symbol="ABNB")]), PlannerDecision()],
        answer_chunks=["ABNB trades ", "at $131.50."],
    )


@pytest.fixture
def client(planner: ScriptedPlanner, provider: FakeProvider) -> Iterator[TestClient]:
    fmp = provider.client()
    app.dependency_overrides[get_planner] = lambda: planner
    app.dependency_overrides[get_fmp_client] = lambda: fmp
    yield TestClient(app)
    app.dependency_overrides.clear()


def _events(body: str) -> List[Dict[str, Any]]:
    return [
        json.loads(line[len("data: ") :]) for line in body.splitlines() if line.startswith("data: ")
    ]


def test_health(client: TestClient) -> None:
    """Liveness probe answers without touching any back-end."""

    assert client.get("/health").json() == {"status": "ok"}


@pytest.mark.parametrize("body", [{"messages": []}, {}])
def test_chat_requires_messages(
    client: TestClient, planner: ScriptedPlanner, body: Dict[str, Any]
) -> None:
    """Empty or missing messages are rejected before the model is called."""

    response = client.post("/chat", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": "Messages are required"}
    assert planner.plan_calls == []
    assert planner.answer_calls == 0


def test_chat_streams_metadata_content_done(
    client: TestClient, planner: ScriptedPlanner, provider: FakeProvider
) -> None:
    """A successful request streams metadata, then content, then a single done."""

    response = client.post("/chat", json=QUESTION)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = _events(response.text)
    assert [e["type"] for e in events] == ["metadata", "content", "content", "done"]
    assert events[0]["toolsUsed"] == ["getQuote"]
    assert events[0]["stepCount"] == 1
    assert events[0]["reasoning"][-1]["type"] == "completion"
    assert "".join(e["content"] for e in events[1:3]) == "ABNB trades at $131.50."
    assert len(provider.endpoint_calls("/quote")) == 1


def test_chat_accepts_prior_turns(client: TestClient, planner: ScriptedPlanner) -> None:
    """Earlier turns are replayed to the planner as given."""

    body = {
        "messages": [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello! Ask me about a company."},
            {"role": "user", "content": "How is Airbnb's stock doing?"},
        ]
    }
    assert client.post("/chat", json=body).status_code == 200
    assert [m.content for m in planner.plan_calls[0]] == [
        "Hi",
        "Hello! Ask me about a company.",
        "How is Airbnb's stock doing?",
    ]


def test_chat_synthesis_failure_ends_with_error_event(
    client: TestClient, planner: ScriptedPlanner
) -> None:
    """Failures after streaming started arrive as one terminal error event."""

    planner.answer_error = RuntimeError("synthesizer crashed")
    events = _events(client.post("/chat", json=QUESTION).text)

    assert events[0]["type"] == "metadata"
    assert events[-1] == {"type": "error", "error": "synthesizer crashed"}
    assert [e["type"] for e in events].count("done") == 0


def test_chat_planning_failure_returns_500(client: TestClient, planner: ScriptedPlanner) -> None:
    """Planner errors happen before streaming and produce an error response."""

    planner.plan_error = RuntimeError("invalid api key")
    response = client.post("/chat", json=QUESTION)

    assert response.status_code == 500
    assert response.json()["details"] == "invalid api key"
    assert "error" in response.json()


def test_chat_reply_returns_whole_answer(client: TestClient) -> None:
    """The non-streaming endpoint returns the concatenated answer and trace summary."""

    response = client.post("/chat/reply", json=QUESTION)
    assert response.status_code == 200
    assert response.json() == {
        "reply": "ABNB trades at $131.50.",
        "toolsUsed": ["getQuote"],
        "stepCount": 1,
    }


def test_chat_reply_requires_messages(client: TestClient) -> None:
    """The non-streaming endpoint validates messages the same way."""

    response = client.post("/chat/reply", json={"messages": []})
    assert response.status_code == 400
    assert response.json() == {"error": "Messages are required"}
