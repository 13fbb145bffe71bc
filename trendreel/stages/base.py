"""Stage contract shared by all pipeline stages.

A stage is anything with a ``name``, a ``description`` and an async
``execute`` turning one typed input into one typed output. Stages are plain
classes that satisfy the protocol structurally; none inherit behaviour.

Every stage:
- checks its input before doing any external work, raising
  InputValidationError that names the offending field;
- never replaces invalid input with defaults;
- keeps no state between calls;
- reports failure only by raising.
"""

from typing import Protocol, TypeVar, runtime_checkable

from trendreel.core.exceptions import InputValidationError
from trendreel.models.schemas import StageName

In = TypeVar("In", contravariant=True)
Out = TypeVar("Out", covariant=True)


@runtime_checkable
class Stage(Protocol[In, Out]):
    """One pipeline step from ``In`` to ``Out``."""

    name: StageName
    description: str

    async def execute(self, input: In) -> Out:
        ...


def require(condition: object, stage: StageName, message: str) -> None:
    """Raise InputValidationError for ``stage`` unless ``condition`` holds."""
    if not condition:
        raise InputValidationError(stage.value, message)
