"""End-to-end tests for the Executor with a scripted automation agent."""

import asyncio

import pytest
from langgraph.graph import END

from conftest import FakeAgent, fill_response

from autoapply.engine.checkpoint import InMemoryCheckpointer
from autoapply.engine.executor import Executor
from autoapply.errors import InputValidationError, RunStateError, StepFailedError, UnknownRunError
from autoapply.graph import FILL_FORM, SUBMIT, build_graph
from autoapply.runtime import (
    MISSING_APPLICATION_INFORMATION,
    SUBMISSION_APPROVAL,
    AgentHandle,
    RunContext,
)
from autoapply.state import TaskInput
from autoapply.utils.resources import ResourceLoader

NO_ACCOUNT = {"output": {"accountRequired": False}}


def _script(*fill_responses):
    return {"AccountRequirement": [NO_ACCOUNT], "FillOutcome": list(fill_responses)}


@pytest.fixture
def executor(runtime):
    return Executor(build_graph(include_account_step=True), runtime)


class TestStart:
    @pytest.mark.asyncio
    async def test_reaches_submit_and_suspends(self, executor, fake_agent, task_input):
        fake_agent.script = _script(fill_response())
        result = await executor.start(task_input)

        assert result.interrupted
        assert result.interrupt.tag == SUBMISSION_APPROVAL
        assert result.state["resume_text"].startswith("Jane Doe")
        assert result.state["fill_status"]["completed"] is True

        checkpoint = executor.checkpointer.get(result.run_id)
        assert checkpoint.next_step == SUBMIT
        assert checkpoint.pending.step == SUBMIT

    @pytest.mark.asyncio
    async def test_missing_resume_fails_before_any_step(self, executor, fake_agent, tmp_path):
        task = TaskInput("https://jobs.example.com/1", str(tmp_path / "missing.pdf"))
        with pytest.raises(InputValidationError):
            await executor.start(task, run_id="bad")
        assert fake_agent.executions == []
        assert fake_agent.navigations == []
        assert executor.checkpointer.get("bad") is None

    @pytest.mark.asyncio
    async def test_invalid_url_fails_validation(self, executor, resume_file):
        with pytest.raises(InputValidationError):
            await executor.start(TaskInput("not-a-url", str(resume_file)))

    @pytest.mark.asyncio
    async def test_duplicate_run_id_rejected(self, executor, fake_agent, task_input):
        fake_agent.script = _script(fill_response())
        await executor.start(task_input, run_id="same")
        with pytest.raises(RunStateError):
            await executor.start(task_input, run_id="same")

    @pytest.mark.asyncio
    async def test_checkpoint_written_after_every_step(self, executor, fake_agent, task_input):
        fake_agent.script = _script(fill_response())
        result = await executor.start(task_input)

        history = executor.checkpointer.history(result.run_id)
        assert [c.next_step for c in history] == [
            "prepare_resource", "handle_account", "fill_form", "submit", "submit",
        ]
        assert [c.pending is not None for c in history] == [False, False, False, False, True]
        # Suspension checkpoint holds the state as it was before submit ran.
        assert history[-1].state == history[-2].state


class TestResume:
    @pytest.mark.asyncio
    async def test_approve_completes_run(self, executor, fake_agent, task_input):
        fake_agent.script = _script(fill_response())
        started = await executor.start(task_input)
        result = await executor.resume(started.run_id, "approve")

        assert result.completed
        assert result.interrupt is None
        assert result.state["submitted"] is True
        assert len(fake_agent.acts) == 1
        assert executor.checkpointer.get(started.run_id).next_step == END

    @pytest.mark.asyncio
    async def test_concurrent_resumes_submit_once(self, executor, fake_agent, task_input):
        fake_agent.script = _script(fill_response())
        started = await executor.start(task_input)

        async def _slow_act(instruction):
            await asyncio.sleep(0)
            fake_agent.acts.append(instruction)
            return {"success": True}

        fake_agent.act = _slow_act
        results = await asyncio.gather(
            executor.resume(started.run_id, "approve"),
            executor.resume(started.run_id, "approve"),
            return_exceptions=True,
        )

        assert len(fake_agent.acts) == 1
        assert results[0].completed
        assert isinstance(results[1], RunStateError)
        assert executor.checkpointer.get(started.run_id).next_step == END

    @pytest.mark.asyncio
    async def test_run_can_be_resumed_again_after_first_resume_returns(
        self, executor, fake_agent, task_input
    ):
        fake_agent.script = _script(fill_response())
        started = await executor.start(task_input)
        looped = await executor.resume(started.run_id, "Fix the phone number")
        assert looped.interrupted
        result = await executor.resume(started.run_id, "approve")
        assert result.completed

    @pytest.mark.asyncio
    async def test_completed_run_cannot_resume(self, executor, fake_agent, task_input):
        fake_agent.script = _script(fill_response())
        started = await executor.start(task_input)
        await executor.resume(started.run_id, "approve")
        with pytest.raises(RunStateError):
            await executor.resume(started.run_id, "approve")

    @pytest.mark.asyncio
    async def test_suggestions_loop_back_to_fill_form(self, executor, fake_agent, task_input):
        fake_agent.script = _script(fill_response())
        started = await executor.start(task_input)
        result = await executor.resume(started.run_id, "Fix email format;Add cover letter")

        assert result.interrupted
        assert result.interrupt.tag == SUBMISSION_APPROVAL
        assert result.state["review_suggestions"] == ["Fix email format", "Add cover letter"]
        assert result.interrupt.context["review_suggestions"] == ["Fix email format", "Add cover letter"]

        fill_calls = fake_agent.calls_for("FillOutcome")
        assert len(fill_calls) == 2
        assert "1. Fix email format" in fill_calls[1]
        steps = [c.next_step for c in executor.checkpointer.history(started.run_id)]
        assert steps[-3:] == [FILL_FORM, SUBMIT, SUBMIT]

    @pytest.mark.asyncio
    async def test_three_attempts_then_submit(self, executor, fake_agent, task_input):
        fake_agent.script = _script(
            fill_response(completed=False, success=False, needs_more=True, missing=["Phone"])
        )
        result = await executor.start(task_input)
        answers = iter(["555-0100", "Yes, authorized to work", "unused"])
        while result.interrupt.tag == MISSING_APPLICATION_INFORMATION:
            result = await executor.resume(result.run_id, next(answers))

        assert result.interrupt.tag == SUBMISSION_APPROVAL
        assert len(fake_agent.calls_for("FillOutcome")) == 3
        assert result.state["fill_status"]["completed"] is False
        assert result.state["fill_context"]["attempt_count"] == 3

    @pytest.mark.asyncio
    async def test_empty_information_exits_fill_immediately(self, executor, fake_agent, task_input):
        fake_agent.script = _script(
            fill_response(completed=False, success=False, needs_more=True, missing=["Phone"])
        )
        result = await executor.start(task_input)
        assert result.interrupt.tag == MISSING_APPLICATION_INFORMATION

        result = await executor.resume(result.run_id, "")

        assert len(fake_agent.calls_for("FillOutcome")) == 1
        assert result.state["fill_status"]["success"] is False
        assert result.state["fill_status"]["completed"] is False
        assert result.interrupt.tag == SUBMISSION_APPROVAL

    @pytest.mark.asyncio
    async def test_unknown_run_raises(self, executor):
        with pytest.raises(UnknownRunError):
            await executor.resume("never-started", "approve")

    @pytest.mark.asyncio
    async def test_resume_in_new_executor_matches_same_process(self, runtime, task_input):
        """A run resumed by a fresh executor behaves like one resumed in place."""
        shared = InMemoryCheckpointer()

        async def _run(resume_in_fresh_executor):
            agent = FakeAgent(_script(fill_response()))
            ctx = RunContext(agent=AgentHandle.of(agent), loader=ResourceLoader(), env=runtime.env)
            first = Executor(build_graph(include_account_step=True), ctx, shared)
            started = await first.start(task_input)
            resumer = first
            if resume_in_fresh_executor:
                resumer = Executor(build_graph(include_account_step=True), ctx, shared)
            return await resumer.resume(started.run_id, "Add phone; ;Fix date"), agent

        in_place, agent_a = await _run(False)
        fresh, agent_b = await _run(True)

        assert in_place.status == fresh.status
        assert in_place.interrupt == fresh.interrupt
        assert in_place.state == fresh.state
        assert agent_a.executions == agent_b.executions
        assert fresh.state["review_suggestions"] == ["Add phone", "Fix date"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_capability_error_names_step(self, executor, fake_agent, task_input):
        async def _boom(instruction, output_schema=None):
            raise ConnectionError("browser crashed")

        fake_agent.execute = _boom
        with pytest.raises(StepFailedError) as excinfo:
            await executor.start(task_input, run_id="r")

        assert excinfo.value.step == "handle_account"
        assert isinstance(excinfo.value.cause, ConnectionError)
        # Last committed checkpoint is left as it was.
        checkpoint = executor.checkpointer.get("r")
        assert checkpoint.next_step == "handle_account"
        assert checkpoint.pending is None

    @pytest.mark.asyncio
    async def test_failed_run_cannot_resume(self, executor, fake_agent, task_input):
        async def _boom(instruction, output_schema=None):
            raise ConnectionError("browser crashed")

        fake_agent.execute = _boom
        with pytest.raises(StepFailedError):
            await executor.start(task_input, run_id="r")
        with pytest.raises(RunStateError):
            await executor.resume("r", "approve")

    @pytest.mark.asyncio
    async def test_unreadable_resume_format_fails_prepare(self, executor, tmp_path):
        resume = tmp_path / "resume.docx"
        resume.write_text("binary-ish")
        with pytest.raises(StepFailedError) as excinfo:
            await executor.start(TaskInput("https://jobs.example.com/1", str(resume)))
        assert excinfo.value.step == "prepare_resource"
