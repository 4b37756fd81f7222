import pytest
from sqlalchemy import select

from zerpha.models import Company, NicheHistory
from zerpha.models.schemas import Candidate
from zerpha.services.history import HistoryTracker


def _candidate(name: str, website: str) -> Candidate:
    return Candidate(name=name, website=website, reason="fits")


class _BrokenSessionFactory:
    def __call__(self):
        raise ConnectionError("database unavailable")


@pytest.mark.asyncio
async def test_record_then_lookup_seen_domains(session_factory, workspace_id):
    tracker = HistoryTracker(session_factory)

    written = await tracker.record_seen_companies(
        workspace_id,
        "dental_practice_software",
        [
            _candidate("Acme", "https://www.acme.com"),
            {"name": "Bravo", "website": "bravo.io/pricing"},
            _candidate("Acme Again", "http://acme.com/about"),
        ],
    )

    assert written == 2
    seen = await tracker.get_seen_domains(workspace_id, "dental_practice_software")
    assert seen == {"acme.com", "bravo.io"}
    assert await tracker.get_seen_domains(workspace_id, "other_niche") == set()
    assert await tracker.get_seen_domains(workspace_id + 1, "dental_practice_software") == set()


@pytest.mark.asyncio
async def test_recording_twice_keeps_one_row_and_first_seen(session_factory, workspace_id):
    tracker = HistoryTracker(session_factory)
    await tracker.record_seen_companies(workspace_id, "crm", [_candidate("Acme", "https://acme.com")])

    async with session_factory() as session:
        first = (await session.execute(select(NicheHistory))).scalars().one()
        first_seen, first_last = first.first_seen_at, first.last_seen_at

    await tracker.record_seen_companies(workspace_id, "crm", [_candidate("Acme", "https://www.acme.com")])

    async with session_factory() as session:
        rows = (await session.execute(select(NicheHistory))).scalars().all()
    assert len(rows) == 1
    assert rows[0].first_seen_at == first_seen
    assert rows[0].last_seen_at >= first_last


@pytest.mark.asyncio
async def test_record_empty_batch_is_a_no_op(session_factory, workspace_id):
    tracker = HistoryTracker(session_factory)
    assert await tracker.record_seen_companies(workspace_id, "crm", []) == 0


@pytest.mark.asyncio
async def test_saved_company_domains_are_normalized(session_factory, workspace_id):
    async with session_factory() as session:
        session.add_all(
            [
                Company(workspace_id=workspace_id, name="Acme", website="https://www.acme.com/", is_saved=True),
                Company(workspace_id=workspace_id, name="Bravo", website="https://bravo.io", is_saved=False),
            ]
        )
        await session.commit()

    tracker = HistoryTracker(session_factory)
    assert await tracker.get_saved_company_domains(workspace_id) == {"acme.com"}


@pytest.mark.asyncio
async def test_history_fails_open_when_store_is_unavailable():
    tracker = HistoryTracker(_BrokenSessionFactory())

    seen = await tracker.lookup_seen_domains(1, "crm")
    assert seen.domains == set()
    assert seen.ok is False
    assert "database unavailable" in seen.error

    saved = await tracker.lookup_saved_company_domains(1)
    assert saved.ok is False
    assert await tracker.get_seen_domains(1, "crm") == set()
    assert await tracker.record_seen_companies(1, "crm", [_candidate("Acme", "https://acme.com")]) == 0
