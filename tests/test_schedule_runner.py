"""定时任务执行测试"""
from typing import List
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from fluxdigest.domain.digest.models import DigestScope
from fluxdigest.domain.schedules.models import ScheduledTask
from fluxdigest.infrastructure.clients.ai import AIError
from fluxdigest.infrastructure.clients.miniflux import MinifluxError
from fluxdigest.infrastructure.notifiers import PushDispatcher
from fluxdigest.services.digest_generator import DigestGenerator
from fluxdigest.services.schedule_runner import (
    AI_NOT_CONFIGURED,
    FEED_NOT_FOUND,
    GROUP_NOT_FOUND,
    MINIFLUX_UNAVAILABLE,
    ScheduleRunner,
)

from .conftest import AI_PREFS, make_entry, make_miniflux
from .test_digest_generator import FakeAI

PUSH_PREFS = {
    **AI_PREFS,
    "digest_push_config": {"url": "https://example.com/hook", "method": "POST"},
}


def _dispatcher(status: int = 200, requests: List[httpx.Request] = None) -> PushDispatcher:
    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status)

    return PushDispatcher(chunk_delay=0, transport=httpx.MockTransport(handler))


def _runner(digest_store, clock, client, dispatcher=None, ai=None) -> ScheduleRunner:
    generator = DigestGenerator(digest_store, ai_client_factory=ai or FakeAI(), clock=clock)
    return ScheduleRunner(generator, dispatcher or _dispatcher(), client_provider=lambda: client)


def _task(scope: DigestScope = None, push: bool = False) -> ScheduledTask:
    return ScheduledTask(
        id="t1",
        scope=scope or DigestScope.all(),
        time="08:00",
        enabled=True,
        hours=24,
        push_enabled=push,
    )


class TestScheduleRunnerPreconditions:
    """前置条件校验"""

    @pytest.mark.asyncio
    async def test_ai_not_configured(self, digest_store, clock):
        client = make_miniflux(entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client)

        result = await runner.run_task("u1", _task(), {})

        assert result.success is False
        assert result.error == AI_NOT_CONFIGURED
        client.get_entries.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_miniflux_unavailable(self, digest_store, clock):
        runner = _runner(digest_store, clock, None)

        result = await runner.run_task("u1", _task(), AI_PREFS)

        assert result.success is False
        assert result.error == MINIFLUX_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_feed_not_found(self, digest_store, clock):
        client = make_miniflux(missing_feed=True, entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client)

        result = await runner.run_task("u1", _task(DigestScope.feed(42)), AI_PREFS)

        assert result.success is False
        assert result.error == FEED_NOT_FOUND
        assert result.target_missing is True
        client.get_entries.assert_not_awaited()
        assert digest_store.get_all("u1") == []

    @pytest.mark.asyncio
    async def test_group_not_found(self, digest_store, clock):
        client = make_miniflux(categories=[{"id": 1, "title": "A"}], entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client)

        result = await runner.run_task("u1", _task(DigestScope.group(7)), AI_PREFS)

        assert result.error == GROUP_NOT_FOUND
        assert result.target_missing is True

    @pytest.mark.asyncio
    async def test_force_runs_despite_missing_target(self, digest_store, clock):
        client = make_miniflux(missing_feed=True, entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client)

        result = await runner.run_task("u1", _task(DigestScope.feed(42)), AI_PREFS, force=True)

        assert result.success is True
        assert result.digest.scope_name == "订阅源"
        assert len(digest_store.get_all("u1")) == 1

    @pytest.mark.asyncio
    async def test_other_lookup_errors_are_not_treated_as_missing(self, digest_store, clock):
        client = make_miniflux(entries=[make_entry(1, "t")])
        client.get_feed = AsyncMock(side_effect=MinifluxError("Miniflux API Error: 500", status_code=500))
        runner = _runner(digest_store, clock, client)

        result = await runner.run_task("u1", _task(DigestScope.feed(1)), AI_PREFS)

        assert result.success is False
        assert result.target_missing is False


class TestScheduleRunnerExecution:
    """生成与推送"""

    @pytest.mark.asyncio
    async def test_generation_uses_prefs(self, digest_store, clock):
        ai = FakeAI()
        client = make_miniflux(entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client, ai=ai)
        prefs = {
            "ai_config": {**AI_PREFS["ai_config"], "targetLang": "English", "digestPrompt": "Sum up in {{targetLang}}"},
            "digest_timezone": "Asia/Shanghai",
        }

        result = await runner.run_task("u1", _task(), prefs)

        assert result.success is True
        assert result.push is None
        assert result.digest.title == "All Subscriptions · Digest 03-01-12:00"
        assert ai.prompts[0].startswith("Sum up in English")
        assert client.get_entries.await_args.args[0]["status"] == "unread"

    @pytest.mark.asyncio
    async def test_push_failure_does_not_fail_task(self, digest_store, clock):
        client = make_miniflux(entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client, dispatcher=_dispatcher(500))

        result = await runner.run_task("u1", _task(push=True), PUSH_PREFS)

        assert result.success is True
        assert result.push.attempted is True
        assert result.push.success is False
        assert result.push.status == 500
        assert len(digest_store.get_all("u1")) == 1

    @pytest.mark.asyncio
    async def test_push_network_error_reports_err(self, digest_store, clock):
        client = make_miniflux(entries=[make_entry(1, "t")])
        dispatcher = MagicMock()
        dispatcher.send = AsyncMock(side_effect=httpx.ConnectError("refused"))
        runner = _runner(digest_store, clock, client, dispatcher=dispatcher)

        result = await runner.run_task("u1", _task(push=True), PUSH_PREFS)

        assert result.success is True
        assert result.push.status == "ERR"
        assert "refused" in result.push.error

    @pytest.mark.asyncio
    async def test_push_success(self, digest_store, clock):
        requests: List[httpx.Request] = []
        client = make_miniflux(entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client, dispatcher=_dispatcher(200, requests))

        result = await runner.run_task("u1", _task(push=True), PUSH_PREFS)

        assert result.push.success is True
        assert result.push.status == 200
        assert len(requests) == 1
        assert result.to_dict()["push"] == {"attempted": True, "success": True, "status": 200, "error": None}

    @pytest.mark.asyncio
    async def test_push_skipped_unless_enabled_or_forced(self, digest_store, clock):
        requests: List[httpx.Request] = []
        client = make_miniflux(entries=[make_entry(1, "t")])
        runner = _runner(digest_store, clock, client, dispatcher=_dispatcher(200, requests))

        result = await runner.run_task("u1", _task(push=False), PUSH_PREFS)
        assert result.push is None
        assert requests == []

        result = await runner.run_task("u1", _task(push=False), PUSH_PREFS, force_push=True)
        assert result.push.success is True
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_generation_error_is_returned(self, digest_store, clock):
        client = make_miniflux(entries=[make_entry(1, "t")])
        ai = FakeAI()
        ai.complete = AsyncMock(side_effect=AIError("AI API 错误: 502", status_code=502))
        runner = _runner(digest_store, clock, client, ai=ai)

        result = await runner.run_task("u1", _task(), AI_PREFS)

        assert result.success is False
        assert result.error == "AI API 错误: 502"
        assert result.target_missing is False
        assert result.to_dict() == {"success": False, "error": "AI API 错误: 502"}
