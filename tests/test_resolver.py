import pytest

from s2tldr.models import CandidatePaper, FetchPhase, FetchStatus, NotFound, Resolved, Unresolved
from s2tldr.services.resolver import TLDRResolver, select_search_candidate

from conftest import StubSearchClient

ABSTRACT = "We review deep neural networks and their training on large datasets."


@pytest.mark.asyncio
async def test_title_match_is_accepted(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning")
    client = StubSearchClient(match=CandidatePaper(title="Deep Learning", tldr_text="A survey of neural nets."))
    phases: list[FetchPhase] = []

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work, on_phase=phases.append)

    assert result.status is FetchStatus.FOUND
    assert result.phase is FetchPhase.MATCH
    assert phases == [FetchPhase.MATCH]
    assert [kind for kind, _ in client.calls] == ["match"]
    outcome = await outcomes.get(work.key)
    assert isinstance(outcome, Resolved)
    assert await library.get_notes(work.key) == [outcome.note_key]
    note = await library.get_note(outcome.note_key)
    assert note.body == "<p>TL;DR</p>\n<p>A survey of neural nets.</p>"


@pytest.mark.asyncio
async def test_match_without_tldr_falls_back_to_search(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning")
    client = StubSearchClient(
        match=CandidatePaper(title="Deep Learning"),
        results=[CandidatePaper(title="Deep Learning.", tldr_text="From search.")],
    )
    phases: list[FetchPhase] = []

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work, on_phase=phases.append)

    assert result.status is FetchStatus.FOUND
    assert result.phase is FetchPhase.SEARCH
    assert phases == [FetchPhase.MATCH, FetchPhase.SEARCH]


@pytest.mark.asyncio
async def test_dissimilar_match_title_falls_back_to_search(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning")
    client = StubSearchClient(match=CandidatePaper(title="Shallow Parsing", tldr_text="Wrong paper."))

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.NOT_FOUND
    assert [kind for kind, _ in client.calls] == ["match", "search"]


@pytest.mark.asyncio
async def test_search_accepts_by_abstract_alone(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning", abstract=ABSTRACT)
    client = StubSearchClient(
        results=[
            CandidatePaper(title="Something Else", abstract="Unrelated text.", tldr_text="no"),
            CandidatePaper(title="Review: deep nets at scale", abstract=ABSTRACT, tldr_text="yes"),
            CandidatePaper(title="Deep Learning", tldr_text="too late"),
        ]
    )

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.FOUND
    assert result.phase is FetchPhase.SEARCH
    outcome = await outcomes.get(work.key)
    note = await library.get_note(outcome.note_key)
    assert note.body.endswith("<p>yes</p>")


def test_search_skips_candidates_without_tldr() -> None:
    chosen = select_search_candidate(
        [CandidatePaper(title="Deep Learning"), CandidatePaper(title="Deep Learning", tldr_text="second")],
        "Deep Learning",
    )
    assert chosen is not None and chosen.tldr_text == "second"


def test_search_abstract_needs_both_sides() -> None:
    candidate = CandidatePaper(title="Other", abstract=ABSTRACT, tldr_text="x")
    assert select_search_candidate([candidate], "Deep Learning", None) is None


@pytest.mark.asyncio
async def test_nothing_acceptable_records_not_found(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning", abstract=ABSTRACT)
    client = StubSearchClient(
        match=None,
        results=[CandidatePaper(title="Protein Folding", abstract="Structures of proteins.", tldr_text="x")],
    )

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.NOT_FOUND
    assert result.phase is None
    assert await outcomes.get(work.key) == NotFound()
    assert await library.get_notes(work.key) == []


@pytest.mark.asyncio
async def test_existing_note_is_reused(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning")
    first = StubSearchClient(match=CandidatePaper(title="Deep Learning", tldr_text="Old summary."))
    await TLDRResolver(first, outcomes, library).fetch_tldr(work)
    original = await outcomes.get(work.key)

    second = StubSearchClient(results=[CandidatePaper(title="Deep Learning", tldr_text="New summary.")])
    result = await TLDRResolver(second, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.FOUND
    assert await outcomes.get(work.key) == original
    assert await library.get_notes(work.key) == [original.note_key]
    note = await library.get_note(original.note_key)
    assert note.body == "<p>TL;DR</p>\n<p>New summary.</p>"


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", ["match_error", "search_error"])
async def test_transport_error_leaves_store_untouched(library, outcomes, failure) -> None:
    work = await library.add_work(title="Deep Learning")
    await outcomes.commit_not_found(work.key)
    before = await outcomes.snapshot()
    client = StubSearchClient(**{failure: True})

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.ERROR
    assert await outcomes.snapshot() == before


@pytest.mark.asyncio
async def test_transport_error_on_fresh_work_writes_nothing(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning")
    client = StubSearchClient(search_error=True)

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.ERROR
    assert await outcomes.get(work.key) == Unresolved()


@pytest.mark.asyncio
async def test_empty_title_makes_no_calls(library, outcomes) -> None:
    work = await library.add_work(title="")
    client = StubSearchClient(match=CandidatePaper(title="", tldr_text="x"))

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.NOT_FOUND
    assert client.calls == []
    assert await outcomes.get(work.key) == Unresolved()


@pytest.mark.asyncio
async def test_work_deleted_before_commit_is_an_error(library, outcomes) -> None:
    work = await library.add_work(title="Deep Learning")
    await library.delete_works([work.key])
    client = StubSearchClient(match=CandidatePaper(title="Deep Learning", tldr_text="Neural nets."))

    result = await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.ERROR
    assert await outcomes.get(work.key) == Unresolved()


@pytest.mark.asyncio
async def test_storage_failure_on_not_found_is_an_error(library, outcomes, monkeypatch) -> None:
    from sqlalchemy.exc import OperationalError

    work = await library.add_work(title="Deep Learning")

    async def broken_commit(key: str) -> None:
        raise OperationalError("UPDATE outcomerecord", {}, Exception("database is locked"))

    monkeypatch.setattr(outcomes, "commit_not_found", broken_commit)

    result = await TLDRResolver(StubSearchClient(), outcomes, library).fetch_tldr(work)

    assert result.status is FetchStatus.ERROR


@pytest.mark.asyncio
async def test_fields_are_read_through_the_library(library, outcomes, monkeypatch) -> None:
    work = await library.add_work(title="Stored Title")
    read: list[str] = []
    original = library.get_field

    def recording_get_field(item, field):
        read.append(field)
        return original(item, field)

    monkeypatch.setattr(library, "get_field", recording_get_field)
    client = StubSearchClient()

    await TLDRResolver(client, outcomes, library).fetch_tldr(work)

    assert read == ["title", "abstractNote"]
    assert client.calls == [("match", "Stored Title"), ("search", "Stored Title")]
