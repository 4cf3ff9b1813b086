"""Structured output shapes requested from the automation agent.

Field names are camelCase on the wire; both spellings are accepted.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AgentOutput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FillOutcome(AgentOutput):
    success: bool = False
    completed: bool = False
    message: str = ""
    needs_more_information: bool = Field(
        default=False,
        description="Whether required fields could not be filled from the provided resources.",
    )
    missing_information: list[str] = Field(
        default_factory=list,
        description="Each field or question that still needs applicant input, with the reason.",
    )
    completion_note: str | None = Field(
        default=None, description="Short note on what was filled in this attempt."
    )


class AccountRequirement(AgentOutput):
    account_required: bool = Field(
        description="Whether this application flow requires creating/logging into an account."
    )
    existing_account_detected: bool | None = Field(
        default=None,
        description="Whether the flow indicates the applicant should log in instead of signing up.",
    )
    application_url: str | None = None
    status_message: str | None = None


class AccountSetup(AgentOutput):
    account_setup_complete: bool = Field(description="Whether account creation/login is complete.")
    requires_verification: bool = Field(
        description="Whether email verification is required to continue."
    )
    verification_instructions: str | None = None
    application_url: str | None = None
    status_message: str | None = None


class LoginCompletion(AgentOutput):
    logged_in: bool = Field(
        description="Whether login/verification is complete and the application is accessible."
    )
    application_url: str | None = None
    status_message: str | None = None
