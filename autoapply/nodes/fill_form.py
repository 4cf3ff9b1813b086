"""FillForm step — asks the automation agent to fill the application form.

One activation makes at most ``MAX_FILL_ATTEMPTS`` agent calls. Between calls
the step suspends to ask the operator for whatever the agent reported as
missing; the attempt counter travels in the suspension progress, so resuming
continues the same activation instead of starting over. An empty answer ends
the activation with a failed status.
"""

import logging
from typing import Any

from autoapply.agents.schemas import FillOutcome
from autoapply.nodes.names import HANDLE_ACCOUNT
from autoapply.runtime import MISSING_APPLICATION_INFORMATION, StepContext
from autoapply.state import ApplicationState, FillStatus
from autoapply.utils.decisions import parse_information_decision
from autoapply.utils.parsing import extract_structured

logger = logging.getLogger(__name__)

MAX_FILL_ATTEMPTS = 3

_AGENT_FLAGS = ("success", "completed", "message")

MISSING_INFORMATION_MESSAGE = (
    "The application form needs more information. Provide missing details to continue."
)


def _build_instruction(state: ApplicationState, progress: dict[str, Any]) -> str:
    """Construct the agent instruction from the state and the in-step progress."""
    parts = [
        "Fill out the application form on this page using the applicant resources below.",
        f"## Resume\n{state.get('resume_text', '')}",
    ]

    extra_prompts = progress.get("extra_prompts")
    if extra_prompts:
        parts.append(f"## Additional Instructions\n{extra_prompts}")

    suggestions = state.get("review_suggestions") or []
    if suggestions:
        numbered = "\n".join(f"{i}. {s}" for i, s in enumerate(suggestions, 1))
        parts.append(f"## Review Suggestions\nRevise the current application using:\n{numbered}")

    missing = progress.get("missing_information") or []
    if missing:
        items = "\n".join(f"- {item}" for item in missing)
        parts.append(
            "## Unresolved Fields\n"
            "Fields already completed in a previous attempt are done. "
            f"Focus only on these:\n{items}"
        )

    parts.append(
        "If required fields cannot be filled from these resources, set needsMoreInformation=true "
        "and list each one in missingInformation.\n"
        "DO NOT CLICK THE SUBMIT BUTTON."
    )
    return "\n\n".join(parts)


def _extract_outcome(response: Any) -> FillOutcome:
    """Decode the agent response, filling agent-level flags from the top level."""
    outcome = extract_structured(response, FillOutcome, FillOutcome())
    if not isinstance(response, dict):
        return outcome

    updates = {
        flag: response[flag]
        for flag in _AGENT_FLAGS
        if flag not in outcome.model_fields_set and flag in response
    }
    if not updates:
        return outcome
    try:
        return FillOutcome.model_validate({**outcome.model_dump(), **updates})
    except ValueError:
        logger.warning("Ignoring malformed agent flags", extra={"flags": sorted(updates)})
        return outcome


def _needs_more_information(outcome: FillOutcome) -> bool:
    if outcome.needs_more_information:
        return True
    if outcome.completed:
        return False
    return not outcome.success


def _append_information(extra_prompts: str | None, information: str, missing: list[str]) -> str:
    header = "Additional information from the applicant"
    if missing:
        header += f" (answering: {'; '.join(missing)})"
    block = f"{header}:\n{information}"
    return f"{extra_prompts}\n\n{block}" if extra_prompts else block


def _finish(progress: dict[str, Any], status: FillStatus) -> dict:
    context = {
        "attempt_count": progress["attempt_count"],
        "missing_information": list(progress.get("missing_information") or []),
    }
    if progress.get("last_completion_note"):
        context["last_completion_note"] = progress["last_completion_note"]
    return {
        "fill_status": status,
        "fill_context": context,
        "extra_prompts": progress.get("extra_prompts"),
    }


async def fill_form_node(state: ApplicationState, ctx: StepContext) -> dict:
    """FillForm step for the workflow graph.

    Fresh activation: opens the job page on the very first fill (unless the
    account step already did), then calls the agent. Resumed activation:
    folds the operator's answer into the extra prompts and calls the agent
    again with only the unresolved fields in focus.
    """
    agent = await ctx.agent()
    resumption = ctx.resumption

    if resumption is None:
        progress = {
            "attempt_count": 0,
            "missing_information": [],
            "extra_prompts": state.get("extra_prompts"),
            "last_completion_note": None,
        }
        if "fill_status" not in state and HANDLE_ACCOUNT not in ctx.graph_steps:
            await agent.navigate(state["job_url"])
    else:
        progress = dict(resumption.progress)
        decision = parse_information_decision(resumption.value)
        if decision.declined:
            logger.warning(
                "No additional information provided; stopping form fill.",
                extra={"attempt": progress["attempt_count"]},
            )
            return _finish(
                progress,
                {
                    "success": False,
                    "message": "Form filling stopped: no additional information was provided.",
                    "completed": False,
                },
            )
        progress["extra_prompts"] = _append_information(
            progress.get("extra_prompts"),
            decision.additional_information,
            progress.get("missing_information") or [],
        )

    progress["attempt_count"] += 1
    response = await agent.execute(_build_instruction(state, progress), FillOutcome)
    outcome = _extract_outcome(response)
    needs_more = _needs_more_information(outcome)

    progress["missing_information"] = list(outcome.missing_information)
    progress["last_completion_note"] = outcome.completion_note or outcome.message or None

    logger.info(
        "Fill attempt %d/%d finished",
        progress["attempt_count"],
        MAX_FILL_ATTEMPTS,
        extra={
            "completed": outcome.completed,
            "needs_more_information": needs_more,
            "missing": len(outcome.missing_information),
        },
    )

    if not needs_more or progress["attempt_count"] >= MAX_FILL_ATTEMPTS:
        return _finish(
            progress,
            {
                "success": outcome.success and not needs_more,
                "message": outcome.message,
                "completed": outcome.completed and not needs_more,
            },
        )

    reason = "; ".join(outcome.missing_information) or (
        progress["last_completion_note"] or "The agent could not complete the form."
    )
    raise ctx.suspend(
        MISSING_APPLICATION_INFORMATION,
        MISSING_INFORMATION_MESSAGE,
        progress=progress,
        reason=reason,
        missing_information=list(outcome.missing_information),
        attempt=progress["attempt_count"],
        max_attempts=MAX_FILL_ATTEMPTS,
    )
