import structlog
import logging
import sys
from typing import Dict, Any, Optional
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "ber-agent"
) -> None:
    """Route structlog through stdlib logging with a JSON or console renderer"""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_service_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Bound once per process; every workflow log line carries these
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a bound workflow id onto entries that did not pass one explicitly"""

    workflow_id = structlog.contextvars.get_contextvars().get("workflow_id")
    if workflow_id:
        event_dict.setdefault("workflow_id", workflow_id)

    return event_dict


class WorkflowLogger:
    """Specialized logger for workflow operations"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_operation_execution(
        self,
        operation_kind: str,
        label: str,
        workflow_id: str,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log hook, validator and action executions"""

        log = self.logger.info if success else self.logger.error
        log(
            "operation_execution",
            operation_kind=operation_kind,
            label=label,
            workflow_id=workflow_id,
            duration_ms=duration_ms,
            success=success,
            error=error
        )

    def log_workflow_transition(
        self,
        workflow_id: str,
        node: str,
        is_action: Optional[bool] = None,
        error: Optional[str] = None
    ):
        """Log workflow state transitions"""

        self.logger.debug(
            "workflow_transition",
            workflow_id=workflow_id,
            node=node,
            is_action=is_action,
            error=error
        )

    def log_skill_match(
        self,
        agent_tag: str,
        skill_tag: Optional[str],
        similarity: Optional[float] = None,
        scores: Optional[Dict[str, float]] = None
    ):
        """Log the outcome of skill matching"""

        self.logger.info(
            "skill_match",
            agent_tag=agent_tag,
            skill_tag=skill_tag,
            similarity=similarity,
            scores=scores or {}
        )


# Global logger instance
workflow_logger = WorkflowLogger("ber.workflow")
