"""Input validation — checks the task input before any step runs."""

import os
from pathlib import Path
from urllib.parse import urlparse

from autoapply.errors import InputValidationError
from autoapply.state import TaskInput


def validate_url(value: str) -> str:
    """Return the stripped URL if it is an absolute http(s) URL.

    Raises InputValidationError otherwise.
    """
    if not isinstance(value, str) or not value.strip():
        raise InputValidationError("Job URL must be a non-empty string.")
    url = value.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InputValidationError(f"Invalid URL: {url}")
    return url


def validate_path(value: str, label: str = "File") -> str:
    """Return the path if it points at an existing, readable file."""
    if not isinstance(value, (str, os.PathLike)) or not str(value).strip():
        raise InputValidationError(f"{label} path must be a non-empty string.")
    path = Path(value).expanduser()
    if not path.is_file():
        raise InputValidationError(f"{label} not found at path: {path}")
    if not os.access(path, os.R_OK):
        raise InputValidationError(f"{label} is not readable: {path}")
    return str(path)


def validate_task_input(
    job_url: str, resume_path: str, extra_prompts_path: str | None = None
) -> TaskInput:
    """Validate all task input fields and return them as a TaskInput."""
    return TaskInput(
        job_url=validate_url(job_url),
        resume_path=validate_path(resume_path, "Resume"),
        extra_prompts_path=(
            validate_path(extra_prompts_path, "Extra prompts")
            if extra_prompts_path is not None
            else None
        ),
    )
