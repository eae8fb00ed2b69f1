"""End-to-end scenarios over the JSON workflow fixtures and a SQLite store."""

import json
from decimal import Decimal

import pytest

from certflow.config import CertflowConfig
from certflow.contracts import WorkflowSubmission
from certflow.engine import WorkflowEngine
from certflow.errors import ConcurrencyError, InvalidStepError, ValidationFailedError
from certflow.persistence import SQLiteWorkflowRepository

STEP1 = "CT401_step1_data_entry"
STEP2 = "CT401_step2_document_upload"
STEP3 = "CT401_step3_review"


@pytest.fixture
def sqlite_engine(provider, tmp_path) -> WorkflowEngine:
    repo = SQLiteWorkflowRepository(tmp_path / "certflow.db")
    return WorkflowEngine(definitions=provider, repository=repo, config=CertflowConfig())


@pytest.mark.asyncio
async def test_three_step_workflow_completes(
    sqlite_engine, tmp_path, provider, step1_data, step2_data, step3_data
):
    engine = sqlite_engine
    instance = await engine.create_instance("CT401_lighting", "alice")

    after_first = await engine.submit_step(
        instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data, submitted_by="alice")
    )
    assert after_first.current_step == STEP2
    assert len(after_first.step_history) == 1

    after_second = await engine.submit_step(
        instance.id, WorkflowSubmission(step_id=STEP2, form_data=step2_data, submitted_by="alice")
    )
    assert after_second.current_step == STEP3
    assert after_second.assigned_actor == "reviewer"
    assert len(after_second.step_history) == 2

    done = await engine.submit_step(
        instance.id,
        WorkflowSubmission(
            step_id=STEP3, form_data=step3_data, submitted_by="rita", decision="approve"
        ),
    )
    assert done.status == "completed"
    assert done.current_step == "completed"
    assert len(done.step_history) == 3

    # A fresh engine over the same database sees the union of all submissions.
    reopened = WorkflowEngine(
        definitions=provider,
        repository=SQLiteWorkflowRepository(tmp_path / "certflow.db"),
        config=CertflowConfig(),
    )
    stored = await reopened.get_instance(instance.id)
    assert stored.current_data == {**step1_data, **step2_data, **step3_data}
    assert [entry.step_id for entry in stored.step_history] == [STEP1, STEP2, STEP3]
    assert [entry.actor_role for entry in stored.step_history] == [
        "customer",
        "customer",
        "reviewer",
    ]
    assert stored.step_history[2].decision == "approve"
    assert stored.completed_at is not None
    assert stored.version == 4
    assert [wf.id for wf in await reopened.get_workflows_by_status("completed")] == [
        instance.id
    ]


@pytest.mark.asyncio
async def test_stale_step_submission_is_rejected(sqlite_engine, step1_data):
    engine = sqlite_engine
    instance = await engine.create_instance("CT401_lighting", "alice")
    await engine.submit_step(instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data))

    with pytest.raises(InvalidStepError):
        await engine.submit_step(
            instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data)
        )
    stored = await engine.get_instance(instance.id)
    assert stored.current_step == STEP2
    assert len(stored.step_history) == 1


@pytest.mark.asyncio
async def test_two_files_for_single_file_field(sqlite_engine, step1_data):
    engine = sqlite_engine
    instance = await engine.create_instance("CT401_lighting", "alice")
    await engine.submit_step(instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data))

    files = [
        {"originalFileName": "a.pdf", "fileSizeBytes": 10, "fileExtension": ".pdf"},
        {"originalFileName": "b.pdf", "fileSizeBytes": 10, "fileExtension": ".pdf"},
    ]
    with pytest.raises(ValidationFailedError) as excinfo:
        await engine.submit_step(
            instance.id,
            WorkflowSubmission(step_id=STEP2, form_data={"documentFile": files}),
        )
    assert [e.message for e in excinfo.value.result.errors] == [
        "documentFile accepts only one file"
    ]


@pytest.mark.parametrize(
    "rows, valid",
    [
        ([], False),
        ([{"brand": "Lumo"}], True),
        (json.dumps([]), False),
        (json.dumps([{"brand": "Lumo"}, {"brand": "Brite"}]), True),
    ],
)
@pytest.mark.asyncio
async def test_brand_table_rows(sqlite_engine, step1_data, rows, valid):
    engine = sqlite_engine
    instance = await engine.create_instance("CT401_lighting", "alice")
    result = await engine.validate_step(
        instance.id, STEP1, dict(step1_data, brandTable=rows)
    )
    assert result.is_valid is valid


@pytest.mark.parametrize(
    "power, messages",
    [
        ("-1", ["Power Rating must be at least 0", "Power Rating has invalid format"]),
        ("123W", ["Power Rating must be a valid number", "Power Rating has invalid format"]),
        ("10001", ["Power Rating must not exceed 10000"]),
        ("123.45", []),
    ],
)
@pytest.mark.asyncio
async def test_power_rating_checks(sqlite_engine, step1_data, power, messages):
    engine = sqlite_engine
    instance = await engine.create_instance("CT401_lighting", "alice")
    result = await engine.validate_step(
        instance.id, STEP1, dict(step1_data, powerRating=power)
    )
    assert [e.message for e in result.errors] == messages


@pytest.mark.asyncio
async def test_concurrent_submissions_do_not_both_win(provider, tmp_path, step1_data):
    db_path = tmp_path / "certflow.db"
    first = WorkflowEngine(
        definitions=provider,
        repository=SQLiteWorkflowRepository(db_path),
        config=CertflowConfig(),
    )
    instance = await first.create_instance("CT401_lighting", "alice")

    repo = SQLiteWorkflowRepository(db_path)
    stale = await repo.get_instance(instance.id)
    await first.save_draft(instance.id, {"companyName": "Acme"})

    stale.current_data["companyName"] = "Other"
    with pytest.raises(ConcurrencyError):
        await repo.save_instance(stale)
    assert (await repo.get_instance(instance.id)).current_data == {"companyName": "Acme"}


@pytest.mark.asyncio
async def test_resubmitting_decimal_values_after_reload_records_no_changes(
    sqlite_engine, step1_data
):
    engine = sqlite_engine
    instance = await engine.create_instance("CT401_lighting", "alice")
    data = dict(step1_data, powerRating=Decimal("123.45"))

    first = await engine.submit_step(
        instance.id, WorkflowSubmission(step_id=STEP1, form_data=data)
    )
    assert first.current_data["powerRating"] == "123.45"

    await engine.go_to_previous_step(instance.id, STEP1)
    await engine.submit_step(instance.id, WorkflowSubmission(step_id=STEP1, form_data=data))

    entry = await engine.get_step_history(instance.id, STEP1)
    assert entry.changed_fields == {}
    assert entry.data_snapshot["powerRating"] == "123.45"
