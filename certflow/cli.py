"""Command line interface for certflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer

from certflow.constants import STATUS_COMPLETED
from certflow.contracts import TransitionResult, ValidationResult, WorkflowSubmission
from certflow.engine import WorkflowEngine
from certflow.errors import CertflowError, ValidationFailedError
from certflow.persistence import WorkflowInstance
from certflow.state_machine import WorkflowEvent, WorkflowStateMachine

app = typer.Typer(help="CLI for certflow certificate workflows")

# Command groups
definition_app = typer.Typer(help="Commands for inspecting workflow definitions")
workflow_app = typer.Typer(help="Commands for managing workflow instances")

app.add_typer(definition_app, name="definition")
app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """certflow CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _read_data(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        _fail(f"Cannot read {path}: {exc}")
    except json.JSONDecodeError as exc:
        _fail(f"Invalid JSON in {path}: {exc}")
    if not isinstance(data, dict):
        _fail(f"{path} must contain a JSON object")
    return data


def _echo_violations(result: ValidationResult) -> None:
    for error in result.errors:
        field = f"{error.field}: " if error.field else ""
        typer.secho(f"- [{error.rule_id}] {field}{error.message}", fg=typer.colors.RED)


def _echo_instance(wf: WorkflowInstance) -> None:
    typer.echo(f"Workflow {wf.id}: {wf.status}")
    typer.echo(f"Definition: {wf.definition_id}")
    typer.echo(f"Current step: {wf.current_step}")
    typer.echo(f"Assigned actor: {wf.assigned_actor or '-'}")
    if wf.sla_deadline:
        typer.echo(f"SLA deadline: {wf.sla_deadline.isoformat()}")
    if wf.current_data:
        typer.echo(f"Data: {json.dumps(wf.current_data, default=str)}")
    for entry in wf.step_history:
        decision = f" [{entry.decision}]" if entry.decision else ""
        typer.echo(
            f"- {entry.step_id}: completed by {entry.completed_by or '-'} "
            f"({entry.actor_role}) at {entry.completed_at.isoformat()}{decision}"
        )
    for record in wf.transitions:
        typer.echo(
            f"* {record.from_state} --{record.event}--> {record.to_state} "
            f"by {record.triggered_by or '-'}"
        )


@definition_app.command("list")
def definition_list() -> None:
    """List available workflow definitions."""
    engine = WorkflowEngine()
    definitions = asyncio.run(engine.list_definitions())
    if not definitions:
        typer.echo("No definitions found")
        return
    for definition in definitions:
        typer.echo(
            f"{definition.certification_id}\t{definition.name}\t"
            f"{len(definition.steps)} steps"
        )


@definition_app.command("show")
def definition_show(definition_id: str) -> None:
    """
    Show the ordered steps of a workflow definition.

    Example:
        certflow definition show CT401_lighting_new
        # Output: CT401_lighting_new: Lighting certification (SLA 30 days)
        #         1. CT401_step1_data_entry (customer) -> workflows/Steps/...
    """
    engine = WorkflowEngine()
    definition = asyncio.run(engine.get_definition(definition_id))
    if definition is None:
        _fail("Definition not found")
    sla = definition.sla_config.total_sla_days
    typer.echo(
        f"{definition.certification_id}: {definition.name}"
        + (f" (SLA {sla} days)" if sla else "")
    )
    for position, reference in enumerate(definition.steps, start=1):
        step_id = reference.step_id or reference.ref_tail
        actor = f" ({reference.actor})" if reference.actor else ""
        typer.echo(f"{position}. {step_id}{actor} -> {reference.step_ref}")


@workflow_app.command("start")
def workflow_start(
    definition_id: str,
    created_by: str = typer.Option("cli", "--created-by", help="Applicant user id"),
    priority: Optional[int] = typer.Option(None, help="1=urgent, 2=high, 3=normal"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Tag, repeatable"),
) -> None:
    """Create a workflow instance positioned on the definition's first step."""
    engine = WorkflowEngine()
    try:
        instance = asyncio.run(
            engine.create_instance(definition_id, created_by, priority, tag or ())
        )
    except CertflowError as exc:
        _fail(str(exc))
    typer.echo(f"Created workflow {instance.id}")
    typer.echo(f"Current step: {instance.current_step}")


@workflow_app.command("list")
def workflow_list(
    status: Optional[str] = typer.Option(None, help="Only instances in this status"),
    actor: Optional[str] = typer.Option(None, help="Only instances assigned to actor"),
) -> None:
    """
    List workflow instances with their status and current step.

    Example:
        certflow workflow list --status in_progress --actor reviewer
        # Output: 3f2c...    in_progress    CT401_step2_document_upload
    """
    engine = WorkflowEngine()
    if status:
        workflows = asyncio.run(engine.get_workflows_by_status(status, actor))
    else:
        workflows = asyncio.run(engine.list_instances())
        if actor:
            workflows = [wf for wf in workflows if wf.assigned_actor == actor]
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.id}\t{wf.status}\t{wf.current_step}")


@workflow_app.command("show")
def workflow_show(instance_id: str) -> None:
    """Show status, data and history of a workflow instance."""
    engine = WorkflowEngine()
    wf = asyncio.run(engine.get_instance(instance_id))
    if wf is None:
        _fail("Workflow not found")
    _echo_instance(wf)


@workflow_app.command("validate")
def workflow_validate(
    instance_id: str,
    step_id: str,
    data: Path = typer.Option(..., "--data", help="JSON file with form data"),
) -> None:
    """Validate form data for the current step without submitting it."""
    form_data = _read_data(data)
    engine = WorkflowEngine()
    try:
        result = asyncio.run(engine.validate_step(instance_id, step_id, form_data))
    except CertflowError as exc:
        _fail(str(exc))
    if result.is_valid:
        typer.echo("Valid")
        return
    typer.secho(f"{len(result.errors)} validation error(s):", fg=typer.colors.RED)
    _echo_violations(result)
    raise typer.Exit(code=1)


@workflow_app.command("submit")
def workflow_submit(
    instance_id: str,
    step_id: str,
    data: Path = typer.Option(..., "--data", help="JSON file with form data"),
    by: str = typer.Option("cli", "--by", help="User completing the step"),
    decision: Optional[str] = typer.Option(None, help="approve, reject, send_back"),
    comments: Optional[str] = typer.Option(None, help="Reviewer comments"),
) -> None:
    """
    Submit form data for the current step and advance the workflow.

    Example:
        certflow workflow submit 3f2c... CT401_step1_data_entry --data form.json
        # Output: Workflow 3f2c... moved to CT401_step2_document_upload
    """
    submission = WorkflowSubmission(
        step_id=step_id,
        form_data=_read_data(data),
        submitted_by=by,
        decision=decision,
        comments=comments,
    )
    engine = WorkflowEngine()
    try:
        instance = asyncio.run(engine.submit_step(instance_id, submission))
    except ValidationFailedError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        _echo_violations(exc.result)
        raise typer.Exit(code=1)
    except CertflowError as exc:
        _fail(str(exc))

    if instance.status == STATUS_COMPLETED:
        typer.echo(f"Workflow {instance.id} completed")
    else:
        typer.echo(f"Workflow {instance.id} moved to {instance.current_step}")


@workflow_app.command("transition")
def workflow_transition(
    instance_id: str,
    event: WorkflowEvent,
    by: str = typer.Option("cli", "--by", help="User triggering the transition"),
    role: Optional[str] = typer.Option(None, help="Role of the triggering user"),
    comments: Optional[str] = typer.Option(None, help="Audit comment"),
) -> None:
    """Apply a status event (Start, Submit, Approve, Hold, Cancel, ...) to a workflow."""
    engine = WorkflowEngine()

    async def _apply() -> TransitionResult:
        wf = await engine.get_instance(instance_id)
        if wf is None:
            return TransitionResult.fail("Workflow not found")
        machine = WorkflowStateMachine(engine.repository)
        return await machine.try_transition(wf, event, by, role, comments)

    try:
        result = asyncio.run(_apply())
    except CertflowError as exc:
        _fail(str(exc))
    if not result.success:
        _fail(result.error_message or "Transition failed")
    typer.echo(
        f"Workflow {instance_id}: {result.previous_state} -> {result.new_state}"
    )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
