import asyncio

from jp_subtitles.orchestrator import RequestOrchestrator
from jp_subtitles.service import EMPTY_RESULT, SubtitleResult
from jp_subtitles.settings import Settings

CFG = Settings(github_token=None, debounce_ms=1000)


class FakeClock:
    def __init__(self, now: float = 10_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class GatedResolver:
    """Resolver whose searches block until the test releases them."""

    def __init__(self, gated: bool = True):
        self.gated = gated
        self.calls = []
        self.contexts = {}
        self._gates = {}

    def _gate(self, title):
        return self._gates.setdefault(title, asyncio.Event())

    def release(self, title):
        self._gate(title).set()

    async def fetch_subtitle(self, title, context=None):
        self.calls.append(title)
        self.contexts[title] = context
        if self.gated:
            await self._gate(title).wait()
        return SubtitleResult(text=f"subs for {title}", file_name=f"{title}.srt")


class ExplodingResolver:
    async def fetch_subtitle(self, title, context=None):
        raise RuntimeError("boom")


def _orchestrator(resolver, clock=None):
    return RequestOrchestrator(resolver=resolver, cfg=CFG, clock=clock or FakeClock())


def test_completed_request_returns_result_and_clears_session():
    resolver = GatedResolver(gated=False)
    orch = _orchestrator(resolver)

    result = asyncio.run(orch.handle("Show - S1E1", "tab-1"))

    assert result == SubtitleResult(text="subs for Show - S1E1", file_name="Show - S1E1.srt")
    assert orch.active_sessions() == 0


def test_duplicate_title_within_window_is_debounced_across_sessions():
    resolver = GatedResolver(gated=False)
    clock = FakeClock()
    orch = _orchestrator(resolver, clock)

    async def scenario():
        first = await orch.handle("Show - S1E1", "tab-1")
        clock.now += 999
        second = await orch.handle("Show - S1E1", "tab-2")
        return first, second

    first, second = asyncio.run(scenario())

    assert first.file_name == "Show - S1E1.srt"
    assert second == EMPTY_RESULT
    assert resolver.calls == ["Show - S1E1"]


def test_duplicate_title_after_window_is_accepted():
    resolver = GatedResolver(gated=False)
    clock = FakeClock()
    orch = _orchestrator(resolver, clock)

    async def scenario():
        await orch.handle("Show", 1)
        clock.now += 1000
        return await orch.handle("Show", 1)

    assert asyncio.run(scenario()).file_name == "Show.srt"
    assert resolver.calls == ["Show", "Show"]


def test_debounce_measures_from_last_accepted_request():
    resolver = GatedResolver(gated=False)
    clock = FakeClock()
    orch = _orchestrator(resolver, clock)

    async def scenario():
        await orch.handle("Show", 1)
        clock.now += 600
        rejected = await orch.handle("Show", 1)
        clock.now += 600
        accepted = await orch.handle("Show", 1)
        return rejected, accepted

    rejected, accepted = asyncio.run(scenario())
    assert rejected == EMPTY_RESULT
    assert accepted.file_name == "Show.srt"


def test_different_titles_are_not_debounced():
    resolver = GatedResolver(gated=False)
    orch = _orchestrator(resolver)

    async def scenario():
        return await orch.handle("Show - S1E1", 1), await orch.handle("Show - S1E2", 1)

    first, second = asyncio.run(scenario())
    assert first.file_name and second.file_name
    assert resolver.calls == ["Show - S1E1", "Show - S1E2"]


def test_newer_request_cancels_older_in_same_session():
    resolver = GatedResolver()
    orch = _orchestrator(resolver)

    async def scenario():
        task_a = asyncio.create_task(orch.handle("Show - S1E1", "tab"))
        await asyncio.sleep(0)
        task_b = asyncio.create_task(orch.handle("Show - S1E2", "tab"))
        await asyncio.sleep(0)

        assert resolver.contexts["Show - S1E1"].cancelled
        assert not resolver.contexts["Show - S1E2"].cancelled

        resolver.release("Show - S1E2")
        result_b = await task_b
        resolver.release("Show - S1E1")
        result_a = await task_a
        return result_a, result_b

    result_a, result_b = asyncio.run(scenario())

    assert result_a == EMPTY_RESULT
    assert result_b == SubtitleResult(text="subs for Show - S1E2", file_name="Show - S1E2.srt")
    assert orch.active_sessions() == 0


def test_stale_result_finishing_first_is_still_discarded():
    resolver = GatedResolver()
    orch = _orchestrator(resolver)

    async def scenario():
        task_a = asyncio.create_task(orch.handle("Old", "tab"))
        await asyncio.sleep(0)
        task_b = asyncio.create_task(orch.handle("New", "tab"))
        await asyncio.sleep(0)
        resolver.release("Old")
        result_a = await task_a
        # the superseded search finishing must not drop the newer session context
        assert orch.active_sessions() == 1
        resolver.release("New")
        return result_a, await task_b

    result_a, result_b = asyncio.run(scenario())
    assert result_a == EMPTY_RESULT
    assert result_b.file_name == "New.srt"


def test_sessions_do_not_cancel_each_other():
    resolver = GatedResolver()
    orch = _orchestrator(resolver)

    async def scenario():
        task_a = asyncio.create_task(orch.handle("Show A", "tab-1"))
        task_b = asyncio.create_task(orch.handle("Show B", "tab-2"))
        await asyncio.sleep(0)
        assert orch.active_sessions() == 2
        resolver.release("Show A")
        resolver.release("Show B")
        return await task_a, await task_b

    result_a, result_b = asyncio.run(scenario())
    assert result_a.file_name == "Show A.srt"
    assert result_b.file_name == "Show B.srt"


def test_debounced_request_leaves_inflight_search_alone():
    resolver = GatedResolver()
    orch = _orchestrator(resolver)

    async def scenario():
        task_a = asyncio.create_task(orch.handle("Show", "tab-1"))
        await asyncio.sleep(0)
        duplicate = await orch.handle("Show", "tab-1")
        assert not resolver.contexts["Show"].cancelled
        resolver.release("Show")
        return duplicate, await task_a

    duplicate, result_a = asyncio.run(scenario())
    assert duplicate == EMPTY_RESULT
    assert result_a.file_name == "Show.srt"
    assert resolver.calls == ["Show"]


def test_resolver_errors_collapse_to_empty_result():
    orch = _orchestrator(ExplodingResolver())

    result = asyncio.run(orch.handle("Show", 1))

    assert result == EMPTY_RESULT
    assert orch.active_sessions() == 0
