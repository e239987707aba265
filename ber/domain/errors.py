from typing import Optional


class WorkflowError(RuntimeError):
    """Base error for every failure raised inside a workflow"""

    kind: str = "workflow_failure"


class InvalidInputError(WorkflowError):
    """The workflow input is missing a required collaborator or message"""

    kind = "invalid_input"

    def __init__(self, detail: str):
        super().__init__(f"invalid workflow input: {detail}")
        self.detail = detail


class SkillNotFoundError(WorkflowError):
    """No skill of the agent matched the message"""

    kind = "skill_not_found"


class LLMFailureError(WorkflowError):
    """The LLM request failed"""

    kind = "llm_failure"


class TemplateFailureError(WorkflowError):
    """Template rendering failed"""

    kind = "template_failure"


class ConversionError(WorkflowError):
    """A value could not be coerced into the expected payload schema"""

    kind = "conversion_failure"


class ActionParseError(WorkflowError):
    """An action command could not be split into action name and workflow id"""

    kind = "action_parse_failure"


class PendingActionNotFoundError(WorkflowError):
    """No payload is stored for the requested action and workflow id"""

    kind = "pending_action_not_found"


class ActionNotFoundError(WorkflowError):
    """The matched skill does not expose the requested action"""

    kind = "action_not_found"

    def __init__(self, action_name: str):
        super().__init__(f"action {action_name} not found")
        self.action_name = action_name


class ValidatorFailureError(WorkflowError):
    """A validator rejected the payload"""

    kind = "validator_failure"

    def __init__(self, name: str, cause: Exception):
        super().__init__(f"Validator {name} failed: {cause}")
        self.name = name
        self.cause = cause


class HookFailureError(WorkflowError):
    """A lifecycle hook failed"""

    kind = "hook_failure"

    def __init__(self, phase: str, cause: Exception):
        super().__init__(f"{phase} hook failed: {cause}")
        self.phase = phase
        self.cause = cause


class ActionFailureError(WorkflowError):
    """An action handler failed"""

    kind = "action_failure"

    def __init__(self, action_name: str, cause: Exception):
        super().__init__(f"action {action_name} failed: {cause}")
        self.action_name = action_name
        self.cause = cause


class OperationTimeoutError(WorkflowError):
    """A sandboxed hook, validator or action exceeded its deadline"""

    kind = "timeout"

    def __init__(self, operation_kind: str, timeout: float):
        super().__init__(f"{operation_kind} timed out after {timeout:g}s")
        self.operation_kind = operation_kind
        self.timeout = timeout


class InternalFailureError(WorkflowError):
    """An operation raised something other than SkillError"""

    kind = "internal_failure"

    def __init__(self, operation_kind: str, cause: BaseException):
        super().__init__(f"{operation_kind} raised unexpected {type(cause).__name__}: {cause}")
        self.operation_kind = operation_kind
        self.cause = cause


class SkillError(Exception):
    """Raised by hooks, validators and actions to report an ordinary failure"""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}
