"""Application state — single source of truth passed through the graph."""

from typing import NamedTuple, TypedDict

from autoapply.errors import StateMergeError


class FillContext(TypedDict, total=False):
    attempt_count: int  # Agent invocations in the latest FillForm activation.
    missing_information: list[str]  # Items the agent still could not fill.
    last_completion_note: str


class FillStatus(TypedDict):
    success: bool
    message: str
    completed: bool


class ApplicationState(TypedDict, total=False):
    job_url: str  # Task input. Immutable after init.
    resume_path: str  # Task input. Immutable after init.
    extra_prompts_path: str | None  # Task input. Immutable after init.
    resume_text: str
    extra_prompts: str | None  # Auxiliary instructions, grows with operator answers.
    fill_context: FillContext
    fill_status: FillStatus
    review_suggestions: list[str]  # Notes from the latest rejected submission.
    submitted: bool


class TaskInput(NamedTuple):
    job_url: str
    resume_path: str
    extra_prompts_path: str | None = None


TASK_INPUT_FIELDS = ("job_url", "resume_path", "extra_prompts_path")
REQUIRED_FIELDS = ("job_url", "resume_path")


def create_state(task_input: TaskInput) -> ApplicationState:
    """Build the initial state from validated task input."""
    missing = [name for name in REQUIRED_FIELDS if not getattr(task_input, name, None)]
    if missing:
        raise StateMergeError(f"Task input missing required fields: {missing}")

    return {
        "job_url": task_input.job_url,
        "resume_path": task_input.resume_path,
        "extra_prompts_path": task_input.extra_prompts_path,
    }


def merge_state(old: ApplicationState, partial: dict | None) -> ApplicationState:
    """Return a new state with the keys of ``partial`` overriding ``old``.

    Keys absent from ``partial`` are left as they are. Task-input fields may
    be re-supplied with their current value but never changed.
    """
    if not partial:
        return dict(old)

    for name in TASK_INPUT_FIELDS:
        if name in partial and name in old and partial[name] != old[name]:
            raise StateMergeError(
                f"'{name}' is task input and cannot be overwritten by a step update."
            )

    return {**old, **partial}
