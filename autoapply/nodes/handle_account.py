"""HandleAccount step — gets past sign-up / sign-in walls before the form.

Phases, each a continuation of the previous one:

1. Detect whether an account is needed. If not, exit with no update.
2. Existing account: suspend for the password (``account_password``).
3. Set up / log in. If email verification is required, suspend for the
   code (``account_verification``); "done" means it was verified by link.
4. Confirm the login completed.

Every failure is fatal for the run; nothing here is retried.
"""

import logging

from autoapply.agents.automation import AutomationAgent
from autoapply.agents.schemas import AccountRequirement, AccountSetup, LoginCompletion
from autoapply.errors import AccountError, ConfigurationError
from autoapply.runtime import ACCOUNT_PASSWORD, ACCOUNT_VERIFICATION, StepContext
from autoapply.state import ApplicationState
from autoapply.utils.decisions import parse_password_decision, parse_verification_decision
from autoapply.utils.parsing import extract_structured

logger = logging.getLogger(__name__)

REQUIREMENT_INSTRUCTION = """\
From the current job posting page, click the main apply button to enter the application flow.
Then determine whether creating or logging into an account is required before reaching the form.
Do not create an account or log in at this step.
Set existingAccountDetected=true if the flow is a sign-in for returning users.
If there is already an "upload resume" button, no account is likely required.
Return output that strictly matches the schema."""

SETUP_INSTRUCTION = """\
Complete all required account setup steps up to the point where the application becomes accessible.
Use this account email when prompted: {email}
Use this account password when prompted: {password}
If email verification is required, stop at that step and set requiresVerification=true.
Otherwise continue until logged in and the application is accessible.
Return output that strictly matches the schema."""

VERIFY_CODE_INSTRUCTION = """\
Use this verification code to complete account verification and continue login: {code}
After entering the code, continue until the application page is accessible while logged in."""

COMPLETION_INSTRUCTION = """\
Continue from the current page and finish login after verification.
If verification was completed externally via email link, continue from the authenticated browser state.
Return output that strictly matches the schema."""


def _require_email(ctx: StepContext) -> str:
    email = ctx.env.account_email if ctx.env else None
    if not email:
        raise ConfigurationError(
            "This application requires account creation/login, but ACCOUNT_EMAIL is missing in .env."
        )
    return email


async def _detect(state: ApplicationState, ctx: StepContext, agent: AutomationAgent) -> dict:
    await agent.navigate(state["job_url"])
    response = await agent.execute(REQUIREMENT_INSTRUCTION, AccountRequirement)
    requirement = extract_structured(
        response, AccountRequirement, AccountRequirement(account_required=False)
    )

    if not requirement.account_required:
        logger.info("No account required for this application.")
        return {}

    _require_email(ctx)

    if requirement.existing_account_detected:
        raise ctx.suspend(
            ACCOUNT_PASSWORD,
            "An existing account appears to be required. "
            "Please provide your account password to continue.",
            reason=requirement.status_message
            or "Returning-user login flow detected before application form.",
        )

    password = ctx.env.account_password
    if not password:
        raise ConfigurationError(
            "This application requires account creation/login, but ACCOUNT_PASSWORD is missing in .env."
        )
    return await _set_up(ctx, agent, password)


async def _set_up(ctx: StepContext, agent: AutomationAgent, password: str) -> dict:
    instruction = SETUP_INSTRUCTION.format(email=_require_email(ctx), password=password)
    response = await agent.execute(instruction, AccountSetup)
    setup = extract_structured(
        response,
        AccountSetup,
        AccountSetup(account_setup_complete=False, requires_verification=False),
    )

    if setup.requires_verification:
        raise ctx.suspend(
            ACCOUNT_VERIFICATION,
            "Email verification is required. Provide the verification code from your email, "
            "or click the verification link and type 'done' to continue.",
            reason=setup.verification_instructions
            or setup.status_message
            or "Account verification required before login can complete.",
        )

    if not setup.account_setup_complete:
        raise AccountError(setup.status_message or "Account setup did not complete successfully.")

    logger.info("Account setup complete.")
    return {}


async def _verify(ctx: StepContext, agent: AutomationAgent) -> dict:
    decision = parse_verification_decision(ctx.resumption.value)
    if decision.completed_out_of_band:
        logger.info("Verification reported as completed via email link.")
    else:
        await agent.execute(VERIFY_CODE_INSTRUCTION.format(code=decision.verification_code))

    response = await agent.execute(COMPLETION_INSTRUCTION, LoginCompletion)
    completion = extract_structured(response, LoginCompletion, LoginCompletion(logged_in=False))
    if not completion.logged_in:
        raise AccountError(
            completion.status_message or "Unable to complete login after verification step."
        )

    logger.info("Login completed after verification.")
    return {}


async def handle_account_node(state: ApplicationState, ctx: StepContext) -> dict:
    agent = await ctx.agent()
    resumption = ctx.resumption

    if resumption is None:
        return await _detect(state, ctx, agent)

    if resumption.awaiting == ACCOUNT_PASSWORD:
        password = parse_password_decision(resumption.value).password
        if not password:
            raise AccountError("A password is required to log into your existing account.")
        return await _set_up(ctx, agent, password)

    if resumption.awaiting == ACCOUNT_VERIFICATION:
        return await _verify(ctx, agent)

    raise AccountError(f"Unexpected resume for '{resumption.awaiting}' in account step.")
