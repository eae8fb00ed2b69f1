"""Tests for the workflow engine operations."""

from datetime import timedelta

import pytest

from certflow.config import CertflowConfig, EngineConfig
from certflow.contracts import ValidationResult, WorkflowSubmission
from certflow.definitions import InMemoryDefinitionProvider
from certflow.engine import WorkflowEngine
from certflow.errors import (
    DefinitionNotFoundError,
    InstanceNotFoundError,
    InvalidOperationError,
    InvalidStepError,
    StepNotFoundError,
    ValidationFailedError,
)
from certflow.models import WorkflowDefinition, WorkflowStep
from certflow.persistence import InMemoryWorkflowRepository
from certflow.validation import BusinessRuleRegistry

STEP1 = "CT401_step1_data_entry"
STEP2 = "CT401_step2_document_upload"
STEP3 = "CT401_step3_review"


@pytest.mark.asyncio
async def test_create_instance(engine):
    instance = await engine.create_instance("CT401_lighting", "alice", tags=["lighting"])

    assert instance.current_step == STEP1
    assert instance.status == "in_progress"
    assert instance.assigned_actor == "customer"
    assert instance.current_data == {}
    assert instance.step_history == []
    assert instance.priority == 3
    assert instance.tags == ["lighting"]
    assert instance.sla_deadline - instance.started_at == timedelta(days=30)
    assert instance.version == 1
    assert (await engine.get_instance(instance.id)).created_by == "alice"


@pytest.mark.asyncio
async def test_create_instance_uses_configured_priority(provider, repository):
    engine = WorkflowEngine(
        definitions=provider,
        repository=repository,
        config=CertflowConfig(engine=EngineConfig(default_priority=1)),
    )
    assert (await engine.create_instance("CT401_lighting", "alice")).priority == 1
    assert (await engine.create_instance("CT401_lighting", "alice", 2)).priority == 2


@pytest.mark.asyncio
async def test_create_instance_unknown_definition(engine):
    with pytest.raises(DefinitionNotFoundError):
        await engine.create_instance("nope", "alice")


@pytest.mark.asyncio
async def test_validate_step_reports_all_violations(engine):
    instance = await engine.create_instance("CT401_lighting", "alice")

    result = await engine.validate_step(
        instance.id, STEP1, {"powerRating": "123W", "hasExport": "yes"}
    )

    assert not result.is_valid
    assert [(e.rule_id, e.field) for e in result.errors] == [
        ("required", "companyName"),
        ("numeric", "powerRating"),
        ("pattern", "powerRating"),
        ("minTableEntries", "brandTable"),
        ("requiredIf", "exportCountries"),
    ]
    assert result.errors[4].message == "Export countries are required for exported products"


@pytest.mark.asyncio
async def test_validate_step_is_idempotent(engine, step1_data):
    instance = await engine.create_instance("CT401_lighting", "alice")
    data = dict(step1_data, powerRating="-1")

    first = await engine.validate_step(instance.id, STEP1, data)
    second = await engine.validate_step(instance.id, STEP1, data)

    assert first == second
    assert "Power Rating must be at least 0" in [e.message for e in first.errors]
    assert (await engine.get_instance(instance.id)).version == 1


@pytest.mark.asyncio
async def test_validate_step_rejects_stale_step_and_missing_instance(engine, step1_data):
    instance = await engine.create_instance("CT401_lighting", "alice")

    with pytest.raises(InvalidStepError) as excinfo:
        await engine.validate_step(instance.id, STEP2, {})
    assert excinfo.value.current_step == STEP1

    with pytest.raises(InstanceNotFoundError):
        await engine.validate_step("missing", STEP1, step1_data)


@pytest.mark.asyncio
async def test_submit_step_merges_data_and_records_history(engine, step1_data):
    instance = await engine.create_instance("CT401_lighting", "alice")

    updated = await engine.submit_step(
        instance.id,
        WorkflowSubmission(step_id=STEP1, form_data=step1_data, submitted_by="alice"),
    )

    assert updated.current_step == STEP2
    assert updated.assigned_actor == "customer"
    assert updated.current_data == step1_data
    assert len(updated.step_history) == 1
    entry = updated.step_history[0]
    assert entry.step_id == STEP1
    assert entry.completed_by == "alice"
    assert entry.actor_role == "customer"
    assert entry.data_snapshot == step1_data
    assert set(entry.changed_fields) == set(step1_data)
    assert (await engine.get_instance(instance.id)).version == 2


@pytest.mark.asyncio
async def test_failed_submission_leaves_instance_untouched(engine, step1_data):
    instance = await engine.create_instance("CT401_lighting", "alice")

    with pytest.raises(ValidationFailedError) as excinfo:
        await engine.submit_step(
            instance.id,
            WorkflowSubmission(step_id=STEP1, form_data=dict(step1_data, brandTable="[]")),
        )
    assert excinfo.value.result.errors[0].rule_id == "minTableEntries"

    stored = await engine.get_instance(instance.id)
    assert stored.current_step == STEP1
    assert stored.current_data == {}
    assert stored.step_history == []
    assert stored.version == 1


@pytest.mark.asyncio
async def test_business_rules_run_after_field_rules(engine, step1_data):
    instance = await engine.create_instance("CT401_lighting", "alice")
    await engine.submit_step(instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data))

    result = await engine.validate_step(instance.id, STEP2, {"notes": "forgot"})

    assert [e.rule_id for e in result.errors] == ["required", "documentRequired"]


@pytest.mark.asyncio
async def test_injected_business_rules(provider, repository, step1_data):
    registry = BusinessRuleRegistry()
    registry.register(
        [STEP1],
        lambda form, current: ValidationResult.failure("closed for today", rule_id="closed"),
    )
    engine = WorkflowEngine(
        definitions=provider,
        repository=repository,
        business_rules=registry,
        config=CertflowConfig(),
    )
    instance = await engine.create_instance("CT401_lighting", "alice")

    result = await engine.validate_step(instance.id, STEP1, step1_data)
    assert result.error_message == "closed for today"


@pytest.mark.asyncio
async def test_submissions_rejected_when_not_editable(engine, repository, step1_data):
    instance = await engine.create_instance("CT401_lighting", "alice")
    stored = await repository.get_instance(instance.id)
    stored.status = "pending_approval"
    await repository.save_instance(stored)

    with pytest.raises(InvalidOperationError):
        await engine.submit_step(
            instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data)
        )
    with pytest.raises(InvalidOperationError):
        await engine.save_draft(instance.id, {"companyName": "x"})


@pytest.mark.asyncio
async def test_save_draft_merges_without_validation(engine):
    instance = await engine.create_instance("CT401_lighting", "alice")

    updated = await engine.save_draft(instance.id, {"powerRating": "not a number"})
    updated = await engine.save_draft(instance.id, {"companyName": "Acme"})

    assert updated.current_data == {"powerRating": "not a number", "companyName": "Acme"}
    assert updated.current_step == STEP1
    assert updated.step_history == []


@pytest.mark.asyncio
async def test_go_to_previous_step(engine, step1_data, step2_data):
    instance = await engine.create_instance("CT401_lighting", "alice")
    await engine.submit_step(instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data))
    await engine.submit_step(instance.id, WorkflowSubmission(step_id=STEP2, form_data=step2_data))

    with pytest.raises(InvalidOperationError):
        await engine.go_to_previous_step(instance.id, STEP3)
    with pytest.raises(StepNotFoundError):
        await engine.go_to_previous_step(instance.id, "step0")

    moved = await engine.go_to_previous_step(instance.id, STEP1)
    assert moved.current_step == STEP1
    assert moved.assigned_actor == "customer"
    assert len(moved.step_history) == 2


@pytest.mark.asyncio
async def test_get_step_history_returns_latest_entry(engine, step1_data):
    instance = await engine.create_instance("CT401_lighting", "alice")
    await engine.submit_step(instance.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data))
    await engine.go_to_previous_step(instance.id, STEP1)
    await engine.submit_step(
        instance.id,
        WorkflowSubmission(step_id=STEP1, form_data=dict(step1_data, companyName="Beta")),
    )

    entry = await engine.get_step_history(instance.id, STEP1)
    assert entry.data_snapshot["companyName"] == "Beta"
    assert set(entry.changed_fields) == {"companyName"}
    assert entry.changed_fields["companyName"].old_value == "Acme Lighting"
    assert await engine.get_step_history(instance.id, STEP3) is None


@pytest.mark.asyncio
async def test_listing_operations(engine, repository, step1_data):
    first = await engine.create_instance("CT401_lighting", "alice")
    second = await engine.create_instance("CT401_lighting", "bob")
    await engine.submit_step(first.id, WorkflowSubmission(step_id=STEP1, form_data=step1_data))

    assert {wf.id for wf in await engine.list_instances()} == {first.id, second.id}
    assert [wf.id for wf in await engine.get_workflows_by_creator("bob")] == [second.id]
    in_progress = await engine.get_workflows_by_status("in_progress", "customer")
    assert {wf.id for wf in in_progress} == {first.id, second.id}
    assert await engine.get_workflows_by_status("completed") == []
    assert [d.certification_id for d in await engine.list_definitions()] == ["CT401_lighting"]


@pytest.mark.asyncio
async def test_definition_without_steps_cannot_start():
    provider = InMemoryDefinitionProvider([WorkflowDefinition(certification_id="empty")])
    engine = WorkflowEngine(
        definitions=provider,
        repository=InMemoryWorkflowRepository(),
        config=CertflowConfig(),
    )
    with pytest.raises(StepNotFoundError):
        await engine.create_instance("empty", "alice")


@pytest.mark.asyncio
async def test_final_approval_business_rule_through_engine():
    definition = WorkflowDefinition.model_validate(
        {
            "certificationId": "CT401_short",
            "steps": [
                {"stepRef": "workflows/Steps/common/CT401_step6_final_approval", "actor": "manager"}
            ],
        }
    )
    provider = InMemoryDefinitionProvider(
        [definition],
        {
            "workflows/Steps/common/CT401_step6_final_approval": WorkflowStep(
                step_id="CT401_step6_final_approval", actor="manager"
            )
        },
    )
    engine = WorkflowEngine(
        definitions=provider, repository=InMemoryWorkflowRepository(), config=CertflowConfig()
    )
    instance = await engine.create_instance("CT401_short", "alice")
    await engine.save_draft(instance.id, {"safetyScore": 42})

    with pytest.raises(ValidationFailedError) as excinfo:
        await engine.submit_step(
            instance.id,
            WorkflowSubmission(
                step_id="CT401_step6_final_approval",
                form_data={"finalDecision": "approve"},
                decision="approve",
            ),
        )
    assert "safety score below 60" in str(excinfo.value)

    done = await engine.submit_step(
        instance.id,
        WorkflowSubmission(
            step_id="CT401_step6_final_approval",
            form_data={"finalDecision": "reject"},
            decision="reject",
            comments="Unsafe",
        ),
    )
    assert done.status == "completed"
    assert done.current_step == "completed"
    assert done.assigned_actor == "manager"
    assert done.completed_at is not None
    assert done.step_history[-1].decision == "reject"
    assert done.step_history[-1].actor_role == "manager"
