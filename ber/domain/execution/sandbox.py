from typing import Any, Optional
from enum import Enum
import asyncio
import time

from pydantic import BaseModel, ConfigDict, Field

from ber.domain.errors import InternalFailureError, OperationTimeoutError, SkillError, WorkflowError
from ber.domain.models.agent_state import ExecutionContext
from ber.domain.skill.skill import ErasedHandler
from ber.infrastructure.config import DEFAULT_OPERATION_TIMEOUT
from ber.infrastructure.observability.logging import workflow_logger


class OperationKind(str, Enum):
    """Kinds of sandboxed operations"""
    HOOK = "hook"
    VALIDATOR = "validator"
    ACTION = "action"


class OperationResult(BaseModel):
    """Outcome of one sandboxed call"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    value: Any = None
    error: Optional[Exception] = None
    duration_ms: float = Field(default=0.0)


class Sandbox:
    """Runs hooks, validators and actions with a deadline and failure containment.

    Each call runs as its own task raced against a single deadline from inside
    the caller's task, so cancelling the caller cancels the operation as well.
    ``SkillError`` and ``WorkflowError`` raised by the operation are its
    ordinary failures; any other exception becomes an ``InternalFailureError``
    and the deadline an ``OperationTimeoutError``. Nothing is retried.
    """

    def __init__(self, timeout: float = DEFAULT_OPERATION_TIMEOUT):
        self.timeout = timeout

    async def run(
        self,
        kind: OperationKind,
        label: str,
        operation: ErasedHandler,
        context: ExecutionContext,
        payload: Any,
    ) -> OperationResult:
        """Execute one operation and report its outcome as a value"""

        started = time.perf_counter()
        task = asyncio.ensure_future(operation(context, payload))

        error: Optional[Exception] = None
        value: Any = None
        try:
            value = await asyncio.wait_for(task, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            if task.done() and not task.cancelled():
                error = InternalFailureError(kind.value, e)
            else:
                error = OperationTimeoutError(kind.value, self.timeout)
        except (SkillError, WorkflowError) as e:
            error = e
        except Exception as e:
            error = InternalFailureError(kind.value, e)

        duration_ms = (time.perf_counter() - started) * 1000
        workflow_logger.log_operation_execution(
            operation_kind=kind.value,
            label=label,
            workflow_id=context.workflow_id,
            duration_ms=round(duration_ms, 2),
            success=error is None,
            error=str(error) if error else None,
        )

        if error is not None:
            return OperationResult(success=False, error=error, duration_ms=duration_ms)
        return OperationResult(success=True, value=value, duration_ms=duration_ms)
