"""
Request data structures.

Models a single client request travelling through the topology, including
the call stack used to route the response back along the forward path.
"""

from dataclasses import dataclass, field, replace
from enum import Enum


class RequestStatus(Enum):
    """Lifecycle state of a request."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class FailureReason(Enum):
    """Why a request failed."""
    UNHEALTHY = "unhealthy"
    BACKLOG_FULL = "backlog_full"
    SERVER_ERROR = "server_error"
    NO_HEALTHY_TARGET = "no_healthy_target"
    RETRIES_EXHAUSTED = "retries_exhausted"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Request:
    """
    A request and its routing state.

    Requests are values: forwarding or returning one produces a new Request,
    so a payload already sitting in the event queue never changes.

    Attributes:
        id: Unique request id
        origin: Client that created the request
        created_at: Creation time (milliseconds)
        deadline: Absolute time after which the client gives up (None = never)
        call_stack: Ids of nodes currently forwarding this request, oldest first
        attempt: Retry attempt at the most recent load balancer (0 = first try)
        status: Current status
        failure_reason: Set when status is FAILED
        pushes: Number of push operations applied to the call stack
        pops: Number of pop operations applied to the call stack
    """
    id: str
    origin: str
    created_at: float
    deadline: float | None = None
    call_stack: tuple[str, ...] = field(default_factory=tuple)
    attempt: int = 0
    status: RequestStatus = RequestStatus.PENDING
    failure_reason: FailureReason | None = None
    pushes: int = 0
    pops: int = 0

    def push(self, node_id: str) -> "Request":
        """Return a copy with ``node_id`` pushed on the call stack."""
        return replace(self, call_stack=self.call_stack + (node_id,), pushes=self.pushes + 1)

    def pop(self, node_id: str) -> "Request":
        """
        Return a copy with ``node_id`` popped from the call stack.

        Raises:
            ValueError: If ``node_id`` is not on top of the stack
        """
        if not self.call_stack or self.call_stack[-1] != node_id:
            raise ValueError(f"request {self.id}: {node_id} is not on top of call stack {self.call_stack}")
        return replace(self, call_stack=self.call_stack[:-1], pops=self.pops + 1)

    @property
    def upstream(self) -> str | None:
        """Node that receives the response to this request, if any."""
        return self.call_stack[-1] if self.call_stack else None

    @property
    def depth(self) -> int:
        """Number of unresolved forward hops."""
        return len(self.call_stack)

    def succeeded(self) -> "Request":
        return replace(self, status=RequestStatus.SUCCESS, failure_reason=None)

    def failed(self, reason: FailureReason) -> "Request":
        return replace(self, status=RequestStatus.FAILED, failure_reason=reason)

    def retried(self) -> "Request":
        """Copy for the next attempt: pending again with attempt + 1."""
        return replace(self, attempt=self.attempt + 1, status=RequestStatus.PENDING, failure_reason=None)

    def first_attempt(self) -> "Request":
        return self.with_attempt(0)

    def with_attempt(self, attempt: int) -> "Request":
        return replace(self, attempt=attempt)

    def is_expired(self, now: float) -> bool:
        return self.deadline is not None and now > self.deadline

    @property
    def is_success(self) -> bool:
        return self.status == RequestStatus.SUCCESS
