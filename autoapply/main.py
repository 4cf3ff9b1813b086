"""Entry point: validates input, runs the workflow, collects operator input at interrupts."""

import argparse
import asyncio
import getpass
import logging
import sys

from autoapply.agents.automation import HttpAutomationAgent
from autoapply.config import get_config, get_env
from autoapply.engine.executor import Executor, RunResult
from autoapply.errors import AutoApplyError, InputValidationError
from autoapply.graph import build_graph
from autoapply.logging_setup import configure_logging
from autoapply.runtime import (
    ACCOUNT_PASSWORD,
    ACCOUNT_VERIFICATION,
    MISSING_APPLICATION_INFORMATION,
    AgentHandle,
    Interrupt,
    RunContext,
)
from autoapply.state import TaskInput
from autoapply.utils.resources import ResourceLoader
from autoapply.utils.validator import validate_path, validate_url

logger = logging.getLogger("autoapply.main")


def _argparse_type(validator, *args):
    def _check(value: str) -> str:
        try:
            return validator(value, *args)
        except InputValidationError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from exc

    return _check


def build_parser() -> argparse.ArgumentParser:
    config = get_config()
    parser = argparse.ArgumentParser(
        prog="autoapply",
        description="Fill and submit an online application form with operator review.",
    )
    parser.add_argument("--job-url", required=True, type=_argparse_type(validate_url), help="Job posting URL")
    parser.add_argument(
        "--resume-path", required=True, type=_argparse_type(validate_path, "Resume"), help="Path to resume PDF"
    )
    parser.add_argument(
        "--extra-prompts",
        dest="extra_prompts_path",
        type=_argparse_type(validate_path, "Extra prompts"),
        help="Path to extra prompts file",
    )
    parser.add_argument(
        "--skip-account", action="store_true", help="Skip the account creation/login step"
    )
    parser.add_argument("--log-level", default=config.get("log_level", "INFO"))
    parser.add_argument("--log-format", choices=("text", "json"), default=config.get("log_format", "text"))
    return parser


def collect_resume_value(interrupt: Interrupt, ask=input, ask_secret=getpass.getpass):
    """Prompt the operator for an interrupt and build the matching resume value."""
    context = interrupt.context
    print(f"\n--- {interrupt.tag.replace('_', ' ').capitalize()} ---")

    if context.get("reason"):
        print(f"Reason: {context['reason']}")

    if interrupt.tag == MISSING_APPLICATION_INFORMATION:
        for item in context.get("missing_information") or []:
            print(f"  - {item}")
        answer = ask(f"{interrupt.message}\n> ").strip()
        return {"type": "provide_information", "additionalInformation": answer}

    if interrupt.tag == ACCOUNT_PASSWORD:
        return {"type": ACCOUNT_PASSWORD, "password": ask_secret(f"{interrupt.message}\n> ")}

    if interrupt.tag == ACCOUNT_VERIFICATION:
        answer = ask(f"{interrupt.message}\n> ").strip()
        return {"type": ACCOUNT_VERIFICATION, "verificationCode": answer}

    # submission_approval
    suggestions = context.get("review_suggestions") or []
    if suggestions:
        print("Previous review suggestions:")
        for i, suggestion in enumerate(suggestions, 1):
            print(f"  {i}. {suggestion}")

    answer = ask(f"{interrupt.message}\n> ").strip()
    if answer.lower() == "approve":
        return {"action": "approve"}
    return {
        "action": "modify",
        "suggestions": [s.strip() for s in answer.split(";") if s.strip()],
    }


async def run(args: argparse.Namespace, ask=input, ask_secret=getpass.getpass) -> RunResult:
    """Run the full workflow for the parsed CLI arguments."""
    config = get_config()
    env = get_env()

    async def _make_agent():
        return HttpAutomationAgent(
            base_url=env.automation_agent_url or config["automation_agent_url"],
            model_name=env.model_name,
            api_key=env.ai_api_key,
            timeout=config.get("agent_timeout_seconds", 300),
            max_retries=config.get("llm_max_retries", 3),
        )

    runtime = RunContext(
        agent=AgentHandle(_make_agent), loader=ResourceLoader(), env=env
    )
    executor = Executor(build_graph(include_account_step=not args.skip_account), runtime)

    task = TaskInput(args.job_url, args.resume_path, args.extra_prompts_path)
    try:
        result = await executor.start(task)
        while result.interrupted:
            value = await asyncio.to_thread(collect_resume_value, result.interrupt, ask, ask_secret)
            result = await executor.resume(result.run_id, value)
    finally:
        await runtime.agent.aclose()

    status = result.state.get("fill_status") or {}
    print(f"[autoapply] Submitted: {bool(result.state.get('submitted'))}")
    print(f"[autoapply] Last fill status: {status.get('message', 'n/a')}")
    return result


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n[autoapply] Aborted by operator.", file=sys.stderr)
        sys.exit(130)
    except AutoApplyError as exc:
        logger.error("Run failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
