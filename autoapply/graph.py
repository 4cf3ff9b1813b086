"""Workflow graph: the fixed set of steps and the edges between them.

    START -> prepare_resource -> [handle_account] -> fill_form <-> submit -> END

Static edges say where a step goes when it returns a plain update. ``submit``
always returns a ``Command`` and may only route to ``fill_form`` or END.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable

from langgraph.graph import END
from langgraph.types import Command

from autoapply.config import get_config
from autoapply.errors import RoutingError
from autoapply.nodes.fill_form import fill_form_node
from autoapply.nodes.handle_account import handle_account_node
from autoapply.nodes.names import FILL_FORM, HANDLE_ACCOUNT, PREPARE_RESOURCE, SUBMIT
from autoapply.nodes.prepare_resource import prepare_resource_node
from autoapply.nodes.submit import submit_node
from autoapply.runtime import StepContext
from autoapply.state import ApplicationState

StepFn = Callable[[ApplicationState, StepContext], Awaitable["dict | Command"]]

_NODE_FNS: dict[str, StepFn] = {
    PREPARE_RESOURCE: prepare_resource_node,
    HANDLE_ACCOUNT: handle_account_node,
    FILL_FORM: fill_form_node,
    SUBMIT: submit_node,
}


@dataclass(frozen=True)
class WorkflowGraph:
    nodes: dict[str, StepFn]
    entry: str
    edges: dict[str, str] = field(default_factory=dict)
    routes: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def next_step(self, step: str) -> str:
        """Follow the static edge out of ``step``."""
        try:
            return self.edges[step]
        except KeyError:
            raise RoutingError(
                f"Step '{step}' returned a plain update but has no outgoing edge."
            ) from None

    def check_route(self, step: str, target: str) -> str:
        """Validate a routing command issued by ``step``."""
        if target != END and target not in self.nodes:
            raise RoutingError(f"Step '{step}' routed to unknown step '{target}'.")
        allowed = self.routes.get(step)
        if allowed is not None and target not in allowed:
            raise RoutingError(
                f"Step '{step}' may only route to {allowed}, not '{target}'."
            )
        return target


def build_graph(include_account_step: bool | None = None) -> WorkflowGraph:
    """Assemble the application workflow.

    Args:
        include_account_step: Whether to run handle_account before filling
            the form. None uses the ``handle_account_enabled`` config value.
    """
    if include_account_step is None:
        include_account_step = get_config().get("handle_account_enabled", True)

    steps = [PREPARE_RESOURCE, HANDLE_ACCOUNT, FILL_FORM, SUBMIT]
    if not include_account_step:
        steps.remove(HANDLE_ACCOUNT)

    # Linear chain up to submit; submit routes explicitly.
    edges = {step: nxt for step, nxt in zip(steps, steps[1:])}

    return WorkflowGraph(
        nodes={name: _NODE_FNS[name] for name in steps},
        entry=PREPARE_RESOURCE,
        edges=edges,
        routes={SUBMIT: (FILL_FORM, END)},
    )
