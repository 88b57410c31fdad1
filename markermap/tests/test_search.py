import asyncio

from markermap.domain.errors import RemoteSearchError
from markermap.domain.models import SearchCandidate
from markermap.services.local_places import load_local_places, match_local_places
from markermap.services.search import (
    SEARCH_RESULT_LIMIT,
    SearchSession,
    SearchState,
    dedup_key,
    merge_results,
)


def _c(name_zh, name_en="", source="remote"):
    return SearchCandidate(name_zh=name_zh, name_en=name_en, x=836000.0, y=818000.0, source=source)


class FakeClient:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.queries = []

    async def asearch(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.results)


class GatedClient:
    """Holds each query's response until the test releases it."""

    def __init__(self, responses):
        self.responses = responses
        self.gates = {}

    def gate(self, query):
        return self.gates.setdefault(query, asyncio.Event())

    async def asearch(self, query):
        await self.gate(query).wait()
        return list(self.responses[query])


def test_dedup_key_prefers_english_name():
    assert dedup_key(_c("海洋公園", "Ocean Park")) == "ocean park"
    assert dedup_key(_c("海洋公園", "")) == "海洋公園"
    assert dedup_key(_c("Ocean PARK")) == dedup_key(_c("x", "ocean park"))


def test_merge_local_wins_and_keeps_order():
    a = _c("甲", "A", source="curated")
    b_local = _c("乙", "B", source="curated")
    b_remote = _c("乙乙", "b", source="remote")
    c = _c("丙", "C", source="remote")

    merged = merge_results([a, b_local], [b_remote, c])

    assert merged == [a, b_local, c]
    assert merged[1].source == "curated"


def test_merge_truncates_to_limit():
    local = [_c(f"L{i}", f"Local {i}") for i in range(3)]
    remote = [_c(f"R{i}", f"Remote {i}") for i in range(6)]
    merged = merge_results(local, remote)
    assert len(merged) == SEARCH_RESULT_LIMIT
    assert [m.name_zh for m in merged] == ["L0", "L1", "L2", "R0", "R1"]


def test_local_match_is_casefolded_substring():
    places = [_c("海洋公園", "Ocean Park"), _c("維多利亞公園", "Victoria Park"), _c("時代廣場", "Times Square")]
    assert [p.name_zh for p in match_local_places("公園", places)] == ["海洋公園", "維多利亞公園"]
    assert [p.name_zh for p in match_local_places("  PARK ", places)] == ["海洋公園", "維多利亞公園"]
    assert match_local_places("   ", places) == []


def test_bundled_dataset_is_searchable():
    places = load_local_places()
    hits = match_local_places("peak", places)
    assert any(p.name_en == "The Peak" for p in hits)
    assert all(p.source == "curated" for p in places)


def test_session_starts_not_searched_and_blank_query_resets():
    client = FakeClient([_c("海洋公園", "Ocean Park")])
    session = SearchSession(client=client, local_places=[], remote_enabled=True)
    assert session.state is SearchState.NOT_SEARCHED

    asyncio.run(session.search("park"))
    assert session.state is SearchState.RESULTS

    outcome = asyncio.run(session.search("   "))
    assert outcome.state is SearchState.NOT_SEARCHED
    assert session.results == []
    assert client.queries == ["park"]


def test_session_zero_matches_is_empty_not_unsearched():
    session = SearchSession(client=FakeClient([]), local_places=[], remote_enabled=True)
    outcome = asyncio.run(session.search("nowhere"))
    assert outcome.state is SearchState.EMPTY
    assert outcome.results == []


def test_session_merges_local_before_remote():
    local = [_c("海洋公園", "Ocean Park", source="curated")]
    remote = [_c("海洋公園站", "OCEAN PARK"), _c("海洋公園萬豪酒店", "Hong Kong Ocean Park Marriott Hotel")]
    session = SearchSession(client=FakeClient(remote), local_places=local, remote_enabled=True)

    outcome = asyncio.run(session.search("ocean park"))

    assert [r.name_zh for r in outcome.results] == ["海洋公園", "海洋公園萬豪酒店"]
    assert outcome.results[0].source == "curated"


def test_session_remote_failure_falls_back_to_local():
    local = [_c("海洋公園", "Ocean Park", source="curated")]
    client = FakeClient(error=RemoteSearchError("HTTP 500"))
    session = SearchSession(client=client, local_places=local, remote_enabled=True)

    outcome = asyncio.run(session.search("ocean"))

    assert outcome.state is SearchState.RESULTS
    assert [r.name_en for r in outcome.results] == ["Ocean Park"]


def test_session_remote_disabled_skips_client():
    client = FakeClient([_c("遠端", "Remote")])
    session = SearchSession(client=client, local_places=[_c("本地", "Local place")], remote_enabled=False)
    outcome = asyncio.run(session.search("local"))
    assert [r.name_zh for r in outcome.results] == ["本地"]
    assert client.queries == []


def test_stale_response_is_discarded():
    client = GatedClient({"peak": [_c("太平山頂", "The Peak")], "park": [_c("海洋公園", "Ocean Park")]})
    session = SearchSession(client=client, local_places=[], remote_enabled=True)

    async def scenario():
        first = asyncio.create_task(session.search("peak"))
        await asyncio.sleep(0)
        second = asyncio.create_task(session.search("park"))
        await asyncio.sleep(0)

        client.gate("park").set()
        newer = await second
        client.gate("peak").set()
        older = await first
        return older, newer

    older, newer = asyncio.run(scenario())

    assert older is None
    assert newer.query == "park"
    assert session.outcome.query == "park"
    assert [r.name_en for r in session.results] == ["Ocean Park"]


def test_clear_invalidates_in_flight_search():
    client = GatedClient({"peak": [_c("太平山頂", "The Peak")]})
    session = SearchSession(client=client, local_places=[], remote_enabled=True)

    async def scenario():
        task = asyncio.create_task(session.search("peak"))
        await asyncio.sleep(0)
        session.clear()
        client.gate("peak").set()
        return await task

    assert asyncio.run(scenario()) is None
    assert session.state is SearchState.NOT_SEARCHED
