"""Simple example walking a certificate application through its steps."""

import asyncio

from certflow import WorkflowDefinition, WorkflowEngine, WorkflowStep, WorkflowSubmission
from certflow.definitions import InMemoryDefinitionProvider
from certflow.errors import ValidationFailedError
from certflow.persistence import InMemoryWorkflowRepository


def build_provider() -> InMemoryDefinitionProvider:
    """Two-step definition: applicant data, then a reviewer decision."""
    definition = WorkflowDefinition.model_validate(
        {
            "certificationId": "CT401_demo",
            "name": "Demo lighting certificate",
            "steps": [
                {"stepRef": "workflows/Steps/demo/data_entry", "actor": "customer"},
                {"stepRef": "workflows/Steps/demo/review", "actor": "reviewer"},
            ],
            "slaConfig": {"totalSLADays": 14},
        }
    )
    data_entry = WorkflowStep.model_validate(
        {
            "stepId": "data_entry",
            "fields": [
                {
                    "key": "companyName",
                    "templateOptions": {"label": "Company Name", "required": True},
                },
                {
                    "key": "powerRating",
                    "templateOptions": {
                        "label": "Power Rating",
                        "type": "number",
                        "min": 0,
                        "max": 10000,
                    },
                },
            ],
        }
    )
    review = WorkflowStep.model_validate(
        {"stepId": "review", "stepConfig": {"nextStep": "completed"}}
    )
    return InMemoryDefinitionProvider(
        [definition],
        {
            "workflows/Steps/demo/data_entry": data_entry,
            "workflows/Steps/demo/review": review,
        },
    )


async def main():
    engine = WorkflowEngine(
        definitions=build_provider(), repository=InMemoryWorkflowRepository()
    )
    instance = await engine.create_instance("CT401_demo", created_by="applicant-1")
    print(f"Started {instance.id} on step {instance.current_step}")

    # Invalid data is reported in full
    try:
        await engine.submit_step(
            instance.id,
            WorkflowSubmission(step_id="data_entry", form_data={"powerRating": "12kW"}),
        )
    except ValidationFailedError as exc:
        for error in exc.result.errors:
            print(f"  {error.field}: {error.message}")

    instance = await engine.submit_step(
        instance.id,
        WorkflowSubmission(
            step_id="data_entry",
            form_data={"companyName": "Acme Lighting", "powerRating": "60"},
            submitted_by="applicant-1",
        ),
    )
    print(f"Now on {instance.current_step}, assigned to {instance.assigned_actor}")

    instance = await engine.submit_step(
        instance.id,
        WorkflowSubmission(
            step_id="review", submitted_by="reviewer-7", decision="approve"
        ),
    )
    print(f"Status: {instance.status} after {len(instance.step_history)} steps")


if __name__ == "__main__":
    asyncio.run(main())
