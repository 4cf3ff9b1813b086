"""PrepareResource step — extracts the resume text and loads extra prompts."""

import asyncio
import logging

from autoapply.runtime import StepContext
from autoapply.state import ApplicationState

logger = logging.getLogger(__name__)


async def prepare_resource_node(state: ApplicationState, ctx: StepContext) -> dict:
    loader = ctx.runtime.loader

    resume_text = await asyncio.to_thread(loader.load_resume, state["resume_path"])
    extra_prompts = await asyncio.to_thread(
        loader.load_extra_prompts, state.get("extra_prompts_path")
    )

    logger.info(
        "Resources prepared",
        extra={
            "resume_chars": len(resume_text),
            "has_extra_prompts": extra_prompts is not None,
        },
    )
    return {
        "resume_text": resume_text,
        "extra_prompts": extra_prompts,
    }
