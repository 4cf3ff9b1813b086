"""Submit step — waits for the operator's decision, then submits or loops back."""

import logging

from langgraph.graph import END
from langgraph.types import Command

from autoapply.nodes.names import FILL_FORM
from autoapply.runtime import SUBMISSION_APPROVAL, StepContext
from autoapply.state import ApplicationState
from autoapply.utils.decisions import DEFAULT_REVISION_NOTE, parse_submission_decision

logger = logging.getLogger(__name__)

APPROVAL_MESSAGE = (
    "Review the application and decide: type 'approve' to submit, "
    "or provide modification suggestions separated by ';'."
)
SUBMIT_INSTRUCTION = (
    "The user approved submission. Click the final submit button now and confirm submission status."
)


async def submit_node(state: ApplicationState, ctx: StepContext) -> Command:
    if ctx.resumption is None:
        logger.info("Ready to submit application. Waiting for user decision.")
        raise ctx.suspend(
            SUBMISSION_APPROVAL,
            APPROVAL_MESSAGE,
            review_suggestions=list(state.get("review_suggestions") or []),
            fill_status=dict(state.get("fill_status") or {}),
        )

    decision = parse_submission_decision(ctx.resumption.value)

    if not decision.approved:
        suggestions = decision.suggestions or [DEFAULT_REVISION_NOTE]
        logger.info(
            "Modification requested, routing back to %s",
            FILL_FORM,
            extra={"review_suggestions": suggestions},
        )
        return Command(goto=FILL_FORM, update={"review_suggestions": suggestions})

    agent = await ctx.agent()
    submit_response = await agent.act(SUBMIT_INSTRUCTION)
    logger.info("Submission action completed", extra={"submit_response": submit_response})

    return Command(goto=END, update={"submitted": True, "review_suggestions": []})
