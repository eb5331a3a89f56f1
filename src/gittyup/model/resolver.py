"""AI conflict resolution using a pydantic-ai agent."""

import re
from contextlib import contextmanager
from typing import Literal

from pydantic_ai import Agent, providers
from pydantic_ai.models import Model

from gittyup.core.config import LLMConfig
from gittyup.core.errors import AiUnavailable
from gittyup.core.log import logger
from gittyup.git.parser import ConflictedFile

DEFAULT_PROMPTS = {
    "auto": (
        "You are a git merge conflict resolver. Output ONLY the merged "
        "file contents, no explanation."
    ),
    "suggest": (
        "You are a git merge conflict resolver. Explain your reasoning "
        "briefly, then output the merged file contents in a code block."
    ),
}

_FENCE = re.compile(r"```[^\n]*\n(.*?)```", re.DOTALL)


@contextmanager
def inject_provider_params(llm_config: LLMConfig):
    """Pass api_key/base_url from config to the provider pydantic-ai
    infers from the model string.

    Temporarily patches providers.infer_provider; restores it on exit.
    Without either setting the provider reads its own environment
    variables and nothing is patched.
    """
    kwargs = {}
    if llm_config.api_key:
        kwargs['api_key'] = llm_config.api_key
    if llm_config.base_url:
        kwargs['base_url'] = llm_config.base_url

    if not kwargs:
        yield
        return

    original_infer_provider = providers.infer_provider

    def patched_infer_provider(provider_name: str):
        provider_class = providers.infer_provider_class(provider_name)
        return provider_class(**kwargs)

    try:
        providers.infer_provider = patched_infer_provider
        yield
    finally:
        providers.infer_provider = original_infer_provider


def strip_code_fences(text: str) -> str:
    """Remove a fence wrapped around the whole text, if any."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return text
    lines = stripped.split("\n")
    body = lines[1:]
    if body and body[-1].strip() == "```":
        body = body[:-1]
    return "\n".join(body)


def extract_code_block(text: str) -> str | None:
    """Contents of the last fenced block in text."""
    blocks = _FENCE.findall(text)
    return blocks[-1] if blocks else None


class AiResolver:
    """Resolves one conflicted file per call.

    Instances are the AI capability handed to the resolution session:
    ``await resolver(file, "auto")`` returns merged content, or None
    when the model could not be reached or produced nothing usable.
    """

    def __init__(
        self,
        llm_config: LLMConfig,
        prompts: dict[str, str] | None = None,
        model: Model | str | None = None,
    ):
        """Args:
            llm_config: Model string, credentials and retries
            prompts: System prompts keyed by mode (config
                prompts.resolver); missing modes use DEFAULT_PROMPTS
            model: Model instance overriding llm_config.model
        """
        self.llm_config = llm_config
        self.prompts = {**DEFAULT_PROMPTS, **(prompts or {})}
        self.model = model or llm_config.model

    def _create_agent(self, mode: str) -> Agent:
        with inject_provider_params(self.llm_config):
            return Agent(
                self.model,
                system_prompt=self.prompts[mode],
                retries=self.llm_config.retries,
            )

    def _build_prompt(self, file: ConflictedFile) -> str:
        sections = [
            f"File: {file.path}",
            f"=== OURS ===\n{file.ours}",
            f"=== THEIRS ===\n{file.theirs}",
        ]
        if file.base:
            sections.append(f"=== BASE ===\n{file.base}")
        return "\n\n".join(sections)

    async def resolve(
        self, file: ConflictedFile, mode: Literal["auto", "suggest"]
    ) -> str:
        """Merged content for file.

        Raises:
            AiUnavailable: If the model could not be reached or
                returned nothing
        """
        prompt = self._build_prompt(file)
        logger.debug(
            f"Asking {self.llm_config.model} to resolve {file.path}",
            mode=mode,
            prompt_length=len(prompt),
        )

        try:
            agent = self._create_agent(mode)
            result = await agent.run(prompt)
        except Exception as e:
            raise AiUnavailable(
                f"LLM call failed for {file.path}: {type(e).__name__}: {e}"
            ) from e

        output = result.output or ""
        logger.trace(f"LLM output for {file.path}:\n{output}")
        if not output.strip():
            raise AiUnavailable(f"LLM returned nothing for {file.path}")

        if mode == "auto":
            content = strip_code_fences(output)
        else:
            content = extract_code_block(output) or output
            if content is not output:
                explanation = _FENCE.sub("", output).strip()
                if explanation:
                    logger.info(explanation, file=file.path)

        # Keep the file's trailing newline convention
        if file.ours.endswith("\n") and not content.endswith("\n"):
            content += "\n"
        return content

    async def __call__(
        self, file: ConflictedFile, mode: Literal["auto", "suggest"]
    ) -> str | None:
        """The session's resolution capability: None instead of
        AiUnavailable."""
        try:
            return await self.resolve(file, mode)
        except AiUnavailable as e:
            logger.warn(str(e), mode=mode)
            return None
