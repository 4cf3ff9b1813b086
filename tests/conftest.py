"""Shared fixtures for the autoapply test suite."""

import pytest
from unittest.mock import patch

from autoapply.config import EnvSettings
from autoapply.runtime import AgentHandle, Resumption, RunContext, StepContext
from autoapply.state import TaskInput
from autoapply.utils.resources import ResourceLoader


class FakeAgent:
    """Scripted stand-in for the automation agent.

    ``script`` maps an output schema name (or "plain" for schema-less calls)
    to the responses to hand out in order. The last response repeats once
    the list runs out.
    """

    def __init__(self, script=None):
        self.script = {key: list(value) for key, value in (script or {}).items()}
        self.executions = []
        self.navigations = []
        self.acts = []
        self.closed = False

    async def navigate(self, url):
        self.navigations.append(url)

    async def execute(self, instruction, output_schema=None):
        key = output_schema.__name__ if output_schema else "plain"
        self.executions.append((instruction, key))
        responses = self.script.get(key) or [{}]
        return responses.pop(0) if len(responses) > 1 else responses[0]

    async def act(self, instruction):
        self.acts.append(instruction)
        return {"success": True, "message": "Submitted"}

    async def aclose(self):
        self.closed = True

    def calls_for(self, key):
        return [instruction for instruction, schema in self.executions if schema == key]


def fill_response(completed=True, success=True, needs_more=False, missing=None, message="Filled"):
    """Agent response shaped like a fill call with structured output."""
    return {
        "success": success,
        "completed": completed,
        "message": message,
        "output": {
            "needsMoreInformation": needs_more,
            "missingInformation": missing or [],
        },
    }


@pytest.fixture
def resume_file(tmp_path):
    path = tmp_path / "resume.txt"
    path.write_text("Jane Doe\njane@example.com\nPython developer")
    return path


@pytest.fixture
def task_input(resume_file):
    return TaskInput("https://jobs.example.com/posting/42", str(resume_file))


@pytest.fixture
def base_state(resume_file):
    """Minimal state after PrepareResource."""
    return {
        "job_url": "https://jobs.example.com/posting/42",
        "resume_path": str(resume_file),
        "extra_prompts_path": None,
        "resume_text": "Jane Doe\njane@example.com\nPython developer",
        "extra_prompts": None,
    }


ENV_VARS = ("MODEL_NAME", "AI_API_KEY", "ACCOUNT_EMAIL", "ACCOUNT_PASSWORD", "AUTOMATION_AGENT_URL")


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable EnvSettings reads from the process environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def env_settings(clean_env):
    return EnvSettings(
        MODEL_NAME="test-model",
        AI_API_KEY="test-key",
        ACCOUNT_EMAIL="jane@example.com",
        ACCOUNT_PASSWORD="s3cret",
    )


@pytest.fixture
def fake_agent():
    return FakeAgent()


@pytest.fixture
def runtime(fake_agent, env_settings):
    return RunContext(
        agent=AgentHandle.of(fake_agent),
        loader=ResourceLoader(),
        env=env_settings,
    )


@pytest.fixture
def make_ctx(runtime):
    """Build a StepContext, optionally resuming with a value."""

    def _make(step, awaiting=None, value=None, progress=None, graph_steps=()):
        resumption = None
        if awaiting is not None:
            resumption = Resumption(awaiting=awaiting, progress=progress or {}, value=value)
        return StepContext(
            run_id="run-1",
            step=step,
            runtime=runtime,
            resumption=resumption,
            graph_steps=graph_steps,
        )

    return _make


@pytest.fixture
def mock_config():
    """Patch the config singleton with test-friendly values."""
    test_config = {
        "automation_agent_url": "http://agent.test",
        "agent_timeout_seconds": 5,
        "llm_max_retries": 0,
        "handle_account_enabled": True,
        "log_level": "DEBUG",
        "log_format": "text",
    }
    with patch("autoapply.config._config", test_config):
        yield test_config
