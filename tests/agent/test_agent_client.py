"""Unit tests for the agent API client, using respx to mock the endpoints."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from atlas_ingest.agent.client import AgentClient
from atlas_ingest.agent.driver import RunDriver
from atlas_ingest.agent.tools import ToolRegistry
from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import AgentError, RunCreationError, TransportFailure
from atlas_ingest.core.http_client import ResilientHttpClient
from atlas_ingest.core.models import RunHandle, RunStatus, ToolOutput

BASE = "https://agent.test/v1"
HANDLE = RunHandle(run_id="run_1", thread_id="thread_1")


@pytest.fixture
def agent(resilient_http: ResilientHttpClient, settings: Settings) -> AgentClient:
    return AgentClient(resilient_http, settings=settings)


@pytest.mark.asyncio
class TestCreateRun:
    async def test_thread_message_run_sequence(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            threads = mock.post("/threads").mock(
                return_value=httpx.Response(200, json={"id": "thread_1"})
            )
            messages = mock.post("/threads/thread_1/messages").mock(
                return_value=httpx.Response(200, json={"id": "msg_1"})
            )
            runs = mock.post("/threads/thread_1/runs").mock(
                return_value=httpx.Response(200, json={"id": "run_1", "status": "queued"})
            )
            handle = await agent.create_run({"id": "42", "url": "https://example.com"})

        assert handle == RunHandle(run_id="run_1", thread_id="thread_1")
        request = threads.calls.last.request
        assert request.headers["authorization"] == "Bearer test-agent-key"
        assert request.headers["openai-beta"] == "assistants=v2"

        message = json.loads(messages.calls.last.request.content)
        assert message["role"] == "user"
        assert json.loads(message["content"][0]["text"]) == {
            "id": "42",
            "url": "https://example.com",
        }
        assert json.loads(runs.calls.last.request.content) == {"assistant_id": "asst_test"}

    async def test_rejected_run_raises_creation_error(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            mock.post("/threads").mock(return_value=httpx.Response(200, json={"id": "thread_1"}))
            mock.post("/threads/thread_1/messages").mock(
                return_value=httpx.Response(200, json={"id": "msg_1"})
            )
            mock.post("/threads/thread_1/runs").mock(
                return_value=httpx.Response(404, json={"error": {"message": "No assistant"}})
            )
            with pytest.raises(RunCreationError) as exc_info:
                await agent.create_run({"id": "1"})

        assert exc_info.value.status_code == 404

    async def test_unreachable_agent_raises_creation_error(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            mock.post("/threads").mock(side_effect=httpx.ConnectError("down"))
            with pytest.raises(RunCreationError):
                await agent.create_run({"id": "1"})

    async def test_thread_without_id_raises_creation_error(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            mock.post("/threads").mock(return_value=httpx.Response(200, json={}))
            with pytest.raises(RunCreationError):
                await agent.create_run({"id": "1"})


@pytest.mark.asyncio
class TestRunCalls:
    async def test_get_run_parses_observation(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            mock.get("/threads/thread_1/runs/run_1").mock(
                return_value=httpx.Response(200, json={"id": "run_1", "status": "in_progress"})
            )
            observation = await agent.get_run(HANDLE)

        assert observation.status is RunStatus.IN_PROGRESS

    async def test_get_run_non_json_raises_agent_error(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            mock.get("/threads/thread_1/runs/run_1").mock(
                return_value=httpx.Response(200, text="<html>gateway</html>")
            )
            with pytest.raises(AgentError):
                await agent.get_run(HANDLE)

    async def test_submit_tool_outputs_body(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            route = mock.post("/threads/thread_1/runs/run_1/submit_tool_outputs").mock(
                return_value=httpx.Response(200, json={"id": "run_1", "status": "queued"})
            )
            await agent.submit_tool_outputs(
                HANDLE,
                [ToolOutput("c1", '{"ok": true}'), ToolOutput("c2", '{"ok": false}')],
            )

        assert json.loads(route.calls.last.request.content) == {
            "tool_outputs": [
                {"tool_call_id": "c1", "output": '{"ok": true}'},
                {"tool_call_id": "c2", "output": '{"ok": false}'},
            ]
        }

    async def test_cancel_run(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            route = mock.post("/threads/thread_1/runs/run_1/cancel").mock(
                return_value=httpx.Response(200, json={"id": "run_1", "status": "cancelling"})
            )
            await agent.cancel_run(HANDLE)

        assert route.called

    async def test_fetch_output_returns_newest_assistant_text(self, agent: AgentClient) -> None:
        listing = {
            "data": [
                {
                    "role": "assistant",
                    "content": [{"type": "text", "text": {"value": "normalized 1 listing"}}],
                },
                {"role": "user", "content": [{"type": "text", "text": {"value": "{}"}}]},
            ]
        }
        with respx.mock(base_url=BASE) as mock:
            route = mock.get("/threads/thread_1/messages").mock(
                return_value=httpx.Response(200, json=listing)
            )
            text = await agent.fetch_output(HANDLE)

        assert text == "normalized 1 listing"
        assert route.calls.last.request.url.params["order"] == "desc"

    async def test_fetch_output_without_assistant_message(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            mock.get("/threads/thread_1/messages").mock(
                return_value=httpx.Response(200, json={"data": []})
            )
            assert await agent.fetch_output(HANDLE) is None

    @pytest.mark.parametrize(
        "required_action",
        [
            "submit_tool_outputs",
            {"submit_tool_outputs": "oops"},
            {"submit_tool_outputs": {"tool_calls": ["oops"]}},
            {"submit_tool_outputs": {"tool_calls": [{"id": "c1", "function": "render"}]}},
        ],
    )
    async def test_get_run_malformed_action_raises_agent_error(
        self, agent: AgentClient, required_action: object
    ) -> None:
        body = {"id": "run_1", "status": "requires_action", "required_action": required_action}
        with respx.mock(base_url=BASE) as mock:
            mock.get("/threads/thread_1/runs/run_1").mock(
                return_value=httpx.Response(200, json=body)
            )
            with pytest.raises(AgentError):
                await agent.get_run(HANDLE)

    async def test_cancel_is_not_retried(self, agent: AgentClient) -> None:
        with respx.mock(base_url=BASE) as mock:
            route = mock.post("/threads/thread_1/runs/run_1/cancel").mock(
                side_effect=httpx.ConnectError("down")
            )
            with pytest.raises(TransportFailure):
                await agent.cancel_run(HANDLE)

        assert route.call_count == 1


@pytest.mark.asyncio
async def test_malformed_poll_counts_as_failed_poll(
    agent: AgentClient, settings: Settings, no_sleep: AsyncMock
) -> None:
    malformed = {
        "id": "run_1",
        "status": "requires_action",
        "required_action": {"submit_tool_outputs": {"tool_calls": ["oops"]}},
    }
    with respx.mock(base_url=BASE) as mock:
        mock.post("/threads").mock(return_value=httpx.Response(200, json={"id": "thread_1"}))
        mock.post("/threads/thread_1/messages").mock(
            return_value=httpx.Response(200, json={"id": "msg_1"})
        )
        mock.post("/threads/thread_1/runs").mock(
            return_value=httpx.Response(200, json={"id": "run_1", "status": "queued"})
        )
        mock.get("/threads/thread_1/runs/run_1").mock(
            return_value=httpx.Response(200, json=malformed)
        )
        mock.post("/threads/thread_1/runs/run_1/cancel").mock(
            return_value=httpx.Response(200, json={"id": "run_1", "status": "cancelling"})
        )
        driver = RunDriver(agent, ToolRegistry({}), settings=settings, sleep=no_sleep)
        result = await driver.drive({"id": "1"}, max_polls=2)

    assert result.final_status is RunStatus.EXPIRED
    assert result.polls == 2
