"""Pydantic models for task documents."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Task(BaseModel):
    """One development step parsed from a task document.

    Tasks are immutable once parsed. Execution progress is tracked by the
    state machine, never on the task itself.

    Example:
        >>> task = Task(
        ...     title="1: Initialize project",
        ...     description="Create the module layout",
        ...     command="go build",
        ...     dependencies=(1,),
        ... )
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Heading text without the task marker")
    description: str = Field(default="", description="Free-form instructions")
    command: str = Field(default="", description="Verification command")
    prerequisites: str = Field(default="", description="Prerequisite check command")
    dependencies: tuple[int, ...] = Field(
        default_factory=tuple,
        description="1-based indices of earlier tasks this task depends on",
    )

    @field_validator("dependencies")
    @classmethod
    def dedupe_dependencies(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        """Keep the first occurrence of each dependency."""
        return tuple(dict.fromkeys(v))

    @property
    def has_verification(self) -> bool:
        """Check if the task declares a verification command."""
        return bool(self.command)

    @property
    def has_prerequisites(self) -> bool:
        """Check if the task declares a prerequisite command."""
        return bool(self.prerequisites)
