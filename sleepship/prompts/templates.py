"""
Prompt templates for the coding agent.

Three prompts drive a task: the first implementation attempt, an
implementation retry carrying the previous error, and a fix request after a
failed verification command.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# TEMPLATE MODEL
# =============================================================================


class PromptTemplate(BaseModel):
    """A reusable prompt template."""

    model_config = ConfigDict(frozen=True)

    name: str
    template: str
    description: str = ""
    variables: list[str] = Field(default_factory=list)

    def format(self, **kwargs: Any) -> str:
        """Render the template.

        Raises:
            ValueError: If a declared variable has no value.
        """
        missing = self.get_missing_variables(**kwargs)
        if missing:
            raise ValueError(f"prompt {self.name!r} is missing variables: {', '.join(missing)}")
        return self.template.format(**kwargs)

    def get_missing_variables(self, **kwargs: Any) -> list[str]:
        """Declared variables absent from ``kwargs``, in declaration order."""
        return [v for v in self.variables if v not in kwargs]


# =============================================================================
# SHARED FRAGMENTS
# =============================================================================


VERDICT_INSTRUCTIONS = """After implementing, you must answer the following question:

[Success check]
Did this task fully succeed? Check that:
1. The required files exist
2. The verification command passes
3. No errors occurred

On success reply: "SUCCESS: this task succeeded"
On failure reply: "FAILED: this task failed. Reason: [specific reason]"

Always answer in exactly this format."""


# =============================================================================
# TASK PROMPTS
# =============================================================================


IMPLEMENTATION_PROMPT = PromptTemplate(
    name="implementation",
    description="First attempt at implementing a task",
    template="""You are an engineer developing software autonomously.

# Task
{title}

{description}
{prerequisites}
# Instructions
1. Implement this task completely
2. Create or edit the files it needs
3. Check that the result works after implementing it
4. Fix any errors you find

Project directory: {project_dir}

Start implementing.

{verdict}""",
    variables=["title", "description", "prerequisites", "project_dir", "verdict"],
)


RETRY_PROMPT = PromptTemplate(
    name="retry",
    description="Implementation retry after a failed attempt",
    template="""The previous attempt at this task failed (retry {retry}/{max_retries}):
Error: {error}

# Task
{title}

{description}
{prerequisites}
# Instructions
1. Fix the error from the previous attempt
2. Implement this task completely
3. Create or edit the files it needs
4. Check that the result works after implementing it
5. Fix any errors you find

Project directory: {project_dir}

Start implementing.

{verdict}""",
    variables=[
        "retry",
        "max_retries",
        "error",
        "title",
        "description",
        "prerequisites",
        "project_dir",
        "verdict",
    ],
)


FIX_PROMPT = PromptTemplate(
    name="fix",
    description="Fix request after a failed verification command",
    template="""The verification command failed (retry {retry}/{max_retries}):

Command: {command}
Error: {error}

# Instructions
1. Fix the error above
2. Make sure the verification passes after the fix
3. Fix any other errors you find

Project directory: {project_dir}

Start fixing.""",
    variables=["retry", "max_retries", "command", "error", "project_dir"],
)


PREREQUISITE_SECTION = """
# Prerequisites
Before implementing, confirm this command succeeds: `{command}`
"""
