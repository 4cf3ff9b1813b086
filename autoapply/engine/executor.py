"""Executor — drives one run through the graph, parking it at interrupts.

The loop runs one step at a time. After every step the merged state is
checkpointed. When a step raises ``SuspendRequest`` the pre-step state is
checkpointed together with the pending interrupt and control returns to the
caller, who later calls ``resume`` with the operator's answer.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Literal

from langgraph.graph import END
from langgraph.types import Command

from autoapply.engine.checkpoint import Checkpoint, InMemoryCheckpointer, PendingInterrupt
from autoapply.errors import RoutingError, RunStateError, StepFailedError, UnknownRunError
from autoapply.graph import WorkflowGraph
from autoapply.runtime import Interrupt, Resumption, RunContext, StepContext, SuspendRequest
from autoapply.state import ApplicationState, TaskInput, create_state, merge_state
from autoapply.utils.validator import validate_task_input

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    run_id: str
    status: Literal["interrupted", "completed"]
    state: ApplicationState
    interrupt: Interrupt | None = None

    @property
    def interrupted(self) -> bool:
        return self.status == "interrupted"

    @property
    def completed(self) -> bool:
        return self.status == "completed"


class Executor:
    """Runs workflow graphs one step at a time with checkpointed suspension."""

    def __init__(
        self,
        graph: WorkflowGraph,
        runtime: RunContext,
        checkpointer: InMemoryCheckpointer | None = None,
    ):
        self.graph = graph
        self.runtime = runtime
        self.checkpointer = checkpointer or InMemoryCheckpointer()

    async def start(self, task_input: TaskInput, run_id: str | None = None) -> RunResult:
        """Validate ``task_input``, create a run and execute until it parks or finishes.

        Raises InputValidationError before any step runs if the input is invalid.
        """
        run_id = run_id or uuid.uuid4().hex
        if run_id in self.checkpointer or not self.checkpointer.claim(run_id):
            raise RunStateError(f"Run '{run_id}' already exists.")

        try:
            task_input = validate_task_input(*task_input)
            state = create_state(task_input)
            checkpoint = Checkpoint(run_id=run_id, sequence=0, state=state, next_step=self.graph.entry)
            self.checkpointer.put(checkpoint)
            logger.info("Run started", extra={"run_id": run_id, "job_url": task_input.job_url})

            return await self._drive(checkpoint, resumption=None)
        finally:
            self.checkpointer.release(run_id)

    async def resume(self, run_id: str, value: Any) -> RunResult:
        """Feed ``value`` to the step parked in ``run_id`` and continue the run.

        Raises RunStateError if another caller is already driving the run.
        """
        if not self.checkpointer.claim(run_id):
            raise RunStateError(f"Run '{run_id}' is already being resumed.")

        try:
            checkpoint = self.checkpointer.get(run_id)
            if checkpoint is None:
                raise UnknownRunError(f"No checkpoint found for run '{run_id}'.")
            if checkpoint.next_step == END:
                raise RunStateError(f"Run '{run_id}' has already completed.")
            if checkpoint.pending is None:
                raise RunStateError(
                    f"Run '{run_id}' is not waiting for input (next step: '{checkpoint.next_step}')."
                )

            pending = checkpoint.pending
            logger.info(
                "Resuming run",
                extra={"run_id": run_id, "step": pending.step, "awaiting": pending.interrupt.tag},
            )
            resumption = Resumption(
                awaiting=pending.interrupt.tag, progress=pending.progress, value=value
            )
            return await self._drive(checkpoint, resumption=resumption)
        finally:
            self.checkpointer.release(run_id)

    async def _drive(self, checkpoint: Checkpoint, resumption: Resumption | None) -> RunResult:
        run_id = checkpoint.run_id
        state = checkpoint.state
        step = checkpoint.next_step
        sequence = checkpoint.sequence

        while step != END:
            ctx = StepContext(
                run_id=run_id,
                step=step,
                runtime=self.runtime,
                resumption=resumption,
                graph_steps=tuple(self.graph.nodes),
            )
            resumption = None  # A resume value is consumed by exactly one activation.
            node_fn = self.graph.nodes[step]

            logger.info("Running step", extra={"run_id": run_id, "step": step})
            try:
                result = await node_fn(state, ctx)
            except SuspendRequest as request:
                sequence += 1
                pending = PendingInterrupt(step=step, interrupt=request.interrupt, progress=request.progress)
                self.checkpointer.put(
                    Checkpoint(run_id=run_id, sequence=sequence, state=state, next_step=step, pending=pending)
                )
                logger.info(
                    "Run suspended",
                    extra={"run_id": run_id, "step": step, "interrupt": request.interrupt.to_dict()},
                )
                return RunResult(run_id, "interrupted", state, request.interrupt)
            except Exception as exc:
                logger.error(
                    "Step failed: %s", exc, extra={"run_id": run_id, "step": step}
                )
                raise StepFailedError(step, exc) from exc

            state, step = self._apply(step, state, result)
            sequence += 1
            self.checkpointer.put(
                Checkpoint(run_id=run_id, sequence=sequence, state=state, next_step=step)
            )
            logger.debug(
                "Checkpoint written", extra={"run_id": run_id, "sequence": sequence, "next_step": step}
            )

        logger.info("Run completed", extra={"run_id": run_id})
        return RunResult(run_id, "completed", state)

    def _apply(self, step: str, state: ApplicationState, result) -> tuple[ApplicationState, str]:
        """Merge a step result and work out the next step."""
        if isinstance(result, Command):
            if not isinstance(result.goto, str):
                raise RoutingError(f"Step '{step}' must route to a single step name.")
            target = self.graph.check_route(step, result.goto)
            return merge_state(state, result.update), target

        if result is not None and not isinstance(result, dict):
            raise RoutingError(
                f"Step '{step}' returned {type(result).__name__}; expected dict or Command."
            )
        return merge_state(state, result), self.graph.next_step(step)
