"""
Runtime types shared by the orchestration core and its collaborators.

These protocols define the seams between the core (routing, accessors,
aggregation) and the outside world: the resource operation capability that
talks to the management endpoint, and the reporter that shows plan progress.
Both are injected, so tests can swap in in-memory fakes.
"""
from __future__ import annotations

from typing import Any, Literal, Mapping, Optional, Protocol, Sequence, Union

# HTTP-like verbs understood by the management endpoint
Method = Literal["GET", "PUT", "POST", "DELETE", "PATCH"]

# Request body: pre-serialized JSON/text, raw bytes, or nothing
Body = Optional[Union[str, bytes]]

__all__ = ["Method", "Body", "ResourceOperation", "PlanReporter"]


class ResourceOperation(Protocol):
    """
    Protocol for invoking one operation against the management endpoint.

    Implementations are pre-bound to a subscription, host and credentials;
    callers only provide the operation-specific pieces.
    """

    async def invoke(
        self,
        method: Method,
        path: Sequence[str],
        *,
        query: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Body = None,
    ) -> Any:
        """
        Invoke an operation and return its parsed result.

        Args:
            method: HTTP verb
            path: Path segments below the service root
            query: Query string parameters
            headers: Extra request headers
            body: Request body

        Returns:
            Parsed JSON for JSON responses, text otherwise, None for empty bodies

        Raises:
            RemoteOperationFailed: If the endpoint reports an error
        """
        ...


class PlanReporter(Protocol):
    """Presentation sink for sequential plan progress."""

    def step_started(self, label: str) -> None:
        """A step is about to run; ``label`` is its progress text."""
        ...

    def step_succeeded(self, label: str) -> None:
        """The current step finished; ``label`` is its success text."""
        ...

    def step_failed(self, label: str) -> None:
        """The current step failed; ``label`` is its failure text."""
        ...
