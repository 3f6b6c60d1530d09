"""Read-only view of tasks owned by the task tracker."""

from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Task(BaseModel):
    """A tracked task, as far as change association is concerned.

    Only the fields needed to correlate changed files are modelled; anything
    else in the tracker's task records is ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Union[int, str] = Field(..., description="Task identifier")
    title: str = Field("", description="Task title")
    status: str = Field("", description="Task status (todo, in-progress, done, ...)")
    related_files: List[str] = Field(
        default_factory=list,
        alias="relatedFiles",
        description="Files declared as related to this task, as the user typed them",
    )

    @field_validator("related_files", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        if value is None:
            return []
        return value
