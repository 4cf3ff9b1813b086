"""Step runtime contract: interrupts, resumption and the run-scoped context.

A step suspends by raising ``SuspendRequest``. The executor parks the run and
hands the ``Interrupt`` to the caller. When the caller resumes, the same step
is called again with ``ctx.resumption`` set, so it can branch straight to the
code that follows its suspension point.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from autoapply.agents.automation import AutomationAgent
from autoapply.config import EnvSettings
from autoapply.utils.resources import ResourceLoader

SUBMISSION_APPROVAL = "submission_approval"
MISSING_APPLICATION_INFORMATION = "missing_application_information"
ACCOUNT_PASSWORD = "account_password"
ACCOUNT_VERIFICATION = "account_verification"

INTERRUPT_TAGS = (
    SUBMISSION_APPROVAL,
    MISSING_APPLICATION_INFORMATION,
    ACCOUNT_PASSWORD,
    ACCOUNT_VERIFICATION,
)


@dataclass(frozen=True)
class Interrupt:
    """Payload handed to the caller when a step suspends."""

    tag: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.tag not in INTERRUPT_TAGS:
            raise ValueError(f"Unknown interrupt tag '{self.tag}'.")

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "message": self.message, "context": dict(self.context)}


class SuspendRequest(Exception):
    """Raised by a step to park the run until a resume value arrives.

    ``progress`` is whatever the step needs to pick up where it stopped. It is
    stored in the checkpoint, so it must be plain data and must not hold secrets.
    """

    def __init__(self, interrupt: Interrupt, progress: dict[str, Any] | None = None):
        super().__init__(interrupt.message)
        self.interrupt = interrupt
        self.progress = progress or {}


@dataclass(frozen=True)
class Resumption:
    awaiting: str  # Tag of the interrupt being answered.
    progress: dict[str, Any]
    value: Any


class AgentHandle:
    """Creates the automation agent on first use, exactly once.

    Concurrent first callers wait on the same initialization. A failed
    initialization is not cached, so the next caller retries it.
    """

    def __init__(self, factory: Callable[[], Awaitable[AutomationAgent]]):
        self._factory = factory
        self._agent: AutomationAgent | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def of(cls, agent: AutomationAgent) -> "AgentHandle":
        """Wrap an already constructed agent."""
        handle = cls(_unused_factory)
        handle._agent = agent
        return handle

    @property
    def initialized(self) -> bool:
        return self._agent is not None

    async def get(self) -> AutomationAgent:
        if self._agent is not None:
            return self._agent
        async with self._lock:
            if self._agent is None:
                self._agent = await self._factory()
            return self._agent

    async def aclose(self) -> None:
        async with self._lock:
            if self._agent is not None:
                await self._agent.aclose()
                self._agent = None


async def _unused_factory() -> AutomationAgent:
    raise RuntimeError("AgentHandle.of() handles are created initialized.")


@dataclass
class RunContext:
    """Capabilities shared by every step of every run in this process."""

    agent: AgentHandle
    loader: ResourceLoader
    env: EnvSettings | None = None


@dataclass(frozen=True)
class StepContext:
    """What a single step activation gets besides the state."""

    run_id: str
    step: str
    runtime: RunContext
    resumption: Resumption | None = None
    graph_steps: tuple[str, ...] = ()  # Every step in the running graph.

    async def agent(self) -> AutomationAgent:
        return await self.runtime.agent.get()

    @property
    def env(self) -> EnvSettings | None:
        return self.runtime.env

    def suspend(self, tag: str, message: str, progress: dict | None = None, **context) -> SuspendRequest:
        """Build a SuspendRequest for this step; the caller raises it."""
        return SuspendRequest(Interrupt(tag, message, context), progress)
