from unittest.mock import AsyncMock

import pytest

from powsync.domain.pow import exceptions, service as service_module
from powsync.domain.pow.models import CreateManyResult
from powsync.domain.pow.operations import DeleteOp
from powsync.domain.pow.service import PowSyncService


def _snapshot(records):
	return [(record.id, record.title) for record in records]


@pytest.mark.asyncio
async def test_invalid_owner_never_touches_storage():
	repo = AsyncMock()
	service = PowSyncService(repo)

	for owner_id in (None, "", "a*b"):
		with pytest.raises(exceptions.InvalidOwner):
			await service.reconcile(owner_id, [{"title": "x"}])

	repo.list_ids.assert_not_awaited()
	repo.apply.assert_not_awaited()


@pytest.mark.asyncio
async def test_malformed_entries_reject_the_whole_list(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("1")])

	with pytest.raises(exceptions.MalformedEntries) as excinfo:
		await pow_service.reconcile("owner-1", [{"title": "new"}, None, {"id": "1", "title": "x"}])

	assert excinfo.value.errors == ["records[1] is undefined or null."]
	assert pow_repo.applied == []
	assert _snapshot(await pow_repo.list_records("owner-1")) == [("1", "title 1")]


@pytest.mark.asyncio
async def test_missing_payload(pow_service):
	with pytest.raises(exceptions.MissingPayload):
		await pow_service.reconcile("owner-1", None)


@pytest.mark.asyncio
async def test_resubmitting_existing_ids_keeps_the_set(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("1"), make_record("2")])

	await pow_service.reconcile("owner-1", [{"id": "1", "title": "title 1"}, {"id": "2", "title": "title 2"}])

	[plan] = pow_repo.applied
	assert plan.deletes == []
	assert plan.creates == []
	assert _snapshot(await pow_repo.list_records("owner-1")) == [("1", "title 1"), ("2", "title 2")]


@pytest.mark.asyncio
async def test_dropping_an_entry_deletes_it(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("1"), make_record("2")])

	results = await pow_service.reconcile("owner-1", [{"id": "1", "title": "title 1"}])

	assert [record.id for record in await pow_repo.list_records("owner-1")] == ["1"]
	assert results[0] == CreateManyResult(count=0)
	assert results[-1].id == "2"


@pytest.mark.asyncio
async def test_new_entry_is_created_for_owner(pow_service, pow_repo):
	results = await pow_service.reconcile(
		"owner-1",
		[{"title": "x", "description": "d", "link": "https://x.dev", "skills": ["go"], "subSkills": ["grpc"]}],
	)

	assert results == [CreateManyResult(count=1)]
	[stored] = await pow_repo.list_records("owner-1")
	assert stored.id == "new-1"
	assert stored.owner_id == "owner-1"
	assert (stored.title, stored.description, stored.link) == ("x", "d", "https://x.dev")
	assert stored.skills == ["go"]
	assert stored.sub_skills == ["grpc"]
	assert stored.created_at is not None


@pytest.mark.asyncio
async def test_mixed_batch(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("1"), make_record("2")])

	results = await pow_service.reconcile("owner-1", [{"id": "1", "title": "updated"}, {"title": "new"}])

	assert results[0] == CreateManyResult(count=1)
	assert results[1].id == "1" and results[1].title == "updated"
	assert results[2].id == "2"
	stored = {record.id: record for record in await pow_repo.list_records("owner-1")}
	assert set(stored) == {"1", "new-1"}
	assert stored["1"].title == "updated"
	# fields that were not sent are kept
	assert stored["1"].description == "description 1"
	assert stored["new-1"].title == "new"


@pytest.mark.asyncio
async def test_failure_on_delete_rolls_back_create_and_update(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("1"), make_record("2")])
	before = _snapshot(await pow_repo.list_records("owner-1"))
	pow_repo.fail_on[DeleteOp] = exceptions.StructuredStorageError(
		"23503", "update or delete violates foreign key constraint", {"table_name": "pow_entries"}
	)

	with pytest.raises(exceptions.StructuredStorageError) as excinfo:
		await pow_service.reconcile("owner-1", [{"id": "1", "title": "updated"}, {"title": "new"}])

	assert excinfo.value.code == "23503"
	assert _snapshot(await pow_repo.list_records("owner-1")) == before
	assert pow_repo.applied == []


@pytest.mark.asyncio
async def test_unknown_failure_is_wrapped(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("1")])
	pow_repo.fail_on[DeleteOp] = ConnectionResetError("connection reset by peer")

	with pytest.raises(exceptions.UnknownStorageError) as excinfo:
		await pow_service.reconcile("owner-1", [{"title": "new"}])

	assert excinfo.value.to_content() == {"error": "connection reset by peer"}
	assert [record.id for record in await pow_repo.list_records("owner-1")] == ["1"]


@pytest.mark.asyncio
async def test_update_of_another_owners_record_fails_atomically(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("mine"), make_record("theirs", owner_id="owner-2")])

	with pytest.raises(exceptions.RecordNotFound) as excinfo:
		await pow_service.reconcile("owner-1", [{"title": "new"}, {"id": "theirs", "title": "hijacked"}])

	assert excinfo.value.code == "02000"
	assert [record.id for record in await pow_repo.list_records("owner-1")] == ["mine"]
	[theirs] = await pow_repo.list_records("owner-2")
	assert theirs.title == "title theirs"


@pytest.mark.asyncio
async def test_disconnect_before_submit_skips_the_batch(pow_service, pow_repo, make_record):
	pow_repo.seed([make_record("1")])

	with pytest.raises(exceptions.ReconcileAborted):
		await pow_service.reconcile("owner-1", [], is_disconnected=AsyncMock(return_value=True))

	assert pow_repo.applied == []
	assert [record.id for record in await pow_repo.list_records("owner-1")] == ["1"]


@pytest.mark.asyncio
async def test_metrics_record_outcomes(monkeypatch, pow_service, pow_repo, make_record):
	outcomes: list[str] = []
	operations: list[dict] = []
	monkeypatch.setattr(service_module.obs_metrics, "inc_pow_reconcile", outcomes.append)
	monkeypatch.setattr(service_module.obs_metrics, "inc_pow_operations", operations.append)
	pow_repo.seed([make_record("1")])

	await pow_service.reconcile("owner-1", [{"title": "new"}])
	with pytest.raises(exceptions.InvalidOwner):
		await pow_service.reconcile("", [])

	assert outcomes == ["applied", "rejected"]
	assert operations == [{"create": 1, "update": 0, "delete": 1}]


@pytest.mark.asyncio
async def test_list_records_validates_owner(pow_service):
	with pytest.raises(exceptions.InvalidOwner):
		await pow_service.list_records("*")
