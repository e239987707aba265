from typing import TypedDict, Annotated, List, Dict, Any, Optional, Literal, Tuple
from functools import wraps
import copy
import inspect
import operator

from langgraph.graph import StateGraph, END
import structlog

from ber.domain.context.memory.memory_store import MemoryStore
from ber.domain.errors import (
    ActionFailureError, ActionNotFoundError, ActionParseError, ConversionError,
    HookFailureError, InternalFailureError, InvalidInputError, LLMFailureError,
    PendingActionNotFoundError, SkillNotFoundError, TemplateFailureError,
    ValidatorFailureError, WorkflowError,
)
from ber.domain.execution.sandbox import OperationKind, Sandbox
from ber.domain.models.agent_state import (
    ChatMessage, ChatRole, ExecutionContext, WorkflowInput, WorkflowPhase, WorkflowResult,
)
from ber.domain.skill.skill import BaseSkill, HookPhase
from ber.infrastructure.config import DEFAULT_OPERATION_TIMEOUT
from ber.infrastructure.observability.logging import workflow_logger
from ber.infrastructure.template.renderer import TemplateRenderer, to_template_data

logger = structlog.get_logger(__name__)

ACTION_PREFIX = "@ber "
APPROVE_COMMAND = "@ber approve"

ACTION_SUCCESS_MESSAGE = "✅ Action executed successfully"
ACTION_SUCCESS_TEMPLATE = "{% if success %}{{ message }}{% else %}{{ error }}{% endif %}"

DEFAULT_ERROR_TEMPLATE = """{% if not success %}## ❌ Error:

{{ error }}

Try rephrasing your request 🔄 {% endif %}"""

AVAILABLE_ACTIONS_TEMPLATE = (
    "\n\n---\n\n#### Available Actions\n"
    "{% if success %}\nThe following actions are available:\n"
    "{% for name in actions %}\n"
    "- Type `@ber {{ name }} __WORKFLOW_ID__` to execute this action\n"
    "{% endfor %}{% endif %}"
)

# Hooks run between the structured query and validation, in this order
QUERY_HOOK_PHASES = (HookPhase.POST_LLM_REQUEST, HookPhase.PRE_VALIDATE, HookPhase.POST_VALIDATE)


def is_action_command(message: str) -> bool:
    """Whether message is an "@ber approve" command"""

    if not message.startswith(APPROVE_COMMAND):
        return False
    rest = message[len(APPROVE_COMMAND):]
    return rest == "" or rest[0].isspace()


def parse_action_command(message: str) -> Tuple[str, str]:
    """Split "@ber <action> <workflowId>" into action name and workflow id"""

    if message.startswith(ACTION_PREFIX):
        message = message[len(ACTION_PREFIX):]
    parts = message.split()

    if len(parts) < 2:
        logger.error("Not enough parts in message", parts_count=len(parts))
        raise ActionParseError("not enough parts in message, expected at least 2")

    return parts[0], parts[1]


async def get_action_details_from_message(message: str, memory_store: Optional[MemoryStore]) -> Tuple[str, str, Any]:
    """Resolve an action command to (action name, workflow id, stored payload)"""

    action_name, workflow_id = parse_action_command(message)

    if memory_store is None:
        raise InvalidInputError("memory store is required")

    value, exists = await memory_store.get(MemoryStore.action_key(action_name, workflow_id))
    if not exists:
        logger.error("No matching key found", action=action_name, workflow_id=workflow_id)
        raise PendingActionNotFoundError(
            f"no matching key found for action {action_name} and workflow id {workflow_id}"
        )

    logger.debug("Found matching key", action=action_name, workflow_id=workflow_id)
    return action_name, workflow_id, value


def available_actions_block(workflow_id: str) -> str:
    """Template block listing the commands that trigger each action"""

    return AVAILABLE_ACTIONS_TEMPLATE.replace("__WORKFLOW_ID__", workflow_id)


class WorkflowState(TypedDict):
    """State for the workflow graph"""
    workflow_input: WorkflowInput
    skill: Optional[BaseSkill]
    payload: Any
    template: Optional[str]
    template_data: Any
    response: Optional[str]
    error: Optional[Exception]
    agent_chain_trace: Annotated[List[str], operator.add]


def workflow_node(phase: WorkflowPhase):
    """Record the node in the trace and turn any failure into state"""

    def decorator(fn):
        @wraps(fn)
        async def wrapper(self, state: WorkflowState) -> Dict[str, Any]:
            workflow_input = state["workflow_input"]
            workflow_logger.log_workflow_transition(
                workflow_id=workflow_input.workflow_id,
                node=phase.value,
                is_action=workflow_input.is_action,
            )

            try:
                update = await fn(self, state)
            except WorkflowError as e:
                update = {"error": e}
            except Exception as e:
                logger.exception("Unexpected failure in workflow node", node=phase.value)
                update = {"error": InternalFailureError(phase.value, e)}

            update["agent_chain_trace"] = [phase.value]
            return update

        return wrapper

    return decorator


class WorkflowEngine:
    """Turns one user message into a rendered reply or an executed action"""

    def __init__(
        self,
        sandbox: Optional[Sandbox] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.sandbox = sandbox or Sandbox(DEFAULT_OPERATION_TIMEOUT)
        self.renderer = renderer or TemplateRenderer()
        self.workflow = self._create_workflow()

    def _create_workflow(self):
        """Create the workflow graph"""

        workflow = StateGraph(WorkflowState)

        workflow.add_node(WorkflowPhase.VALIDATE_INPUT.value, self.validate_input_node)
        workflow.add_node(WorkflowPhase.MATCH_SKILL.value, self.match_skill_node)
        workflow.add_node(WorkflowPhase.RUN_ACTION.value, self.run_action_node)
        workflow.add_node(WorkflowPhase.RUN_QUERY.value, self.run_query_node)
        workflow.add_node(WorkflowPhase.FAIL.value, self.fail_node)
        workflow.add_node(WorkflowPhase.RENDER.value, self.render_node)

        workflow.set_entry_point(WorkflowPhase.VALIDATE_INPUT.value)

        workflow.add_conditional_edges(
            WorkflowPhase.VALIDATE_INPUT.value,
            self.route_on_error,
            {
                "continue": WorkflowPhase.MATCH_SKILL.value,
                "fail": WorkflowPhase.FAIL.value
            }
        )

        workflow.add_conditional_edges(
            WorkflowPhase.MATCH_SKILL.value,
            self.route_on_mode,
            {
                "action": WorkflowPhase.RUN_ACTION.value,
                "query": WorkflowPhase.RUN_QUERY.value,
                "fail": WorkflowPhase.FAIL.value
            }
        )

        for node in (WorkflowPhase.RUN_ACTION, WorkflowPhase.RUN_QUERY):
            workflow.add_conditional_edges(
                node.value,
                self.route_on_error,
                {
                    "continue": WorkflowPhase.RENDER.value,
                    "fail": WorkflowPhase.FAIL.value
                }
            )

        workflow.add_edge(WorkflowPhase.FAIL.value, WorkflowPhase.RENDER.value)
        workflow.add_edge(WorkflowPhase.RENDER.value, END)

        return workflow.compile()

    def route_on_error(self, state: WorkflowState) -> Literal["continue", "fail"]:
        return "fail" if state.get("error") else "continue"

    def route_on_mode(self, state: WorkflowState) -> Literal["action", "query", "fail"]:
        if state.get("error"):
            return "fail"
        return "action" if state["workflow_input"].is_action else "query"

    @workflow_node(WorkflowPhase.VALIDATE_INPUT)
    async def validate_input_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Check that every collaborator is present"""

        workflow_input = state["workflow_input"]

        if workflow_input.agent is None:
            raise InvalidInputError("agent is required")
        if workflow_input.llm_client is None:
            raise InvalidInputError("LLM client is required")
        if workflow_input.skill_matcher is None:
            raise InvalidInputError("skill matcher is required")
        if not workflow_input.message:
            raise InvalidInputError("message is required")
        if workflow_input.memory_store is None:
            raise InvalidInputError("memory store is required")

        return {}

    @workflow_node(WorkflowPhase.MATCH_SKILL)
    async def match_skill_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Pick the skill that handles the message"""

        workflow_input = state["workflow_input"]

        try:
            skill = workflow_input.skill_matcher(workflow_input.message, workflow_input.agent)
            if inspect.isawaitable(skill):
                skill = await skill
        except SkillNotFoundError:
            raise
        except Exception as e:
            raise SkillNotFoundError(f"no suitable skill found: {e}") from e

        if skill is None:
            raise SkillNotFoundError("no suitable skill found")

        logger.info("Found matching skill", skill_tag=skill.tag, workflow_id=workflow_input.workflow_id)
        return {"skill": skill}

    @workflow_node(WorkflowPhase.RUN_ACTION)
    async def run_action_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Execute a previously offered action"""

        workflow_input = state["workflow_input"]
        skill = state["skill"]

        action_name, _, stored = await get_action_details_from_message(
            workflow_input.message, workflow_input.memory_store
        )

        try:
            # Work on a detached copy so the stored entry stays as persisted
            payload = skill.convert(skill.dump(stored))
        except ConversionError as e:
            raise ConversionError(f"failed to convert payload: {e}") from e

        context = self._context(workflow_input, skill)

        payload = await self._run_hook(skill, HookPhase.PRE_ACTION, context, payload)

        action = skill.get_action(action_name)
        if action is None:
            raise ActionNotFoundError(action_name)

        result = await self.sandbox.run(OperationKind.ACTION, action_name, action, context, payload)
        if not result.success:
            raise ActionFailureError(action_name, result.error)

        payload = await self._run_hook(skill, HookPhase.POST_ACTION, context, payload)

        return {
            "payload": payload,
            "template": ACTION_SUCCESS_TEMPLATE,
            "template_data": {"success": True, "message": ACTION_SUCCESS_MESSAGE},
        }

    @workflow_node(WorkflowPhase.RUN_QUERY)
    async def run_query_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Query the LLM and run hooks, validators and action bookkeeping"""

        workflow_input = state["workflow_input"]
        skill = state["skill"]
        context = self._context(workflow_input, skill)

        prototype = skill.prototype()
        if prototype is not None:
            await self._run_hook(skill, HookPhase.PRE_LLM_REQUEST, context, prototype)

        messages = [ChatMessage(role=ChatRole.SYSTEM, content=skill.prompt)] + list(workflow_input.chat_history)

        try:
            response = await workflow_input.llm_client.query_with_schema(messages, skill.schema)
        except LLMFailureError:
            raise
        except Exception as e:
            raise LLMFailureError(f"LLM request failed: {e}") from e

        try:
            payload = skill.convert(response)
        except ConversionError as e:
            raise ConversionError(f"failed to convert response: {e}") from e

        for phase in QUERY_HOOK_PHASES:
            payload = await self._run_hook(skill, phase, context, payload)

        for name, validator in skill.validators():
            result = await self.sandbox.run(OperationKind.VALIDATOR, name, validator, context, payload)
            if not result.success:
                raise ValidatorFailureError(name, result.error)

        action_names = skill.action_names()
        if action_names:
            stored = skill.dump(payload)
            for action_name in action_names:
                key = MemoryStore.action_key(action_name, workflow_input.workflow_id)
                await workflow_input.memory_store.set(key, copy.deepcopy(stored))

        return {
            "payload": payload,
            "template": skill.template,
            "template_data": payload,
        }

    @workflow_node(WorkflowPhase.FAIL)
    async def fail_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Turn the failure into error template data"""

        error = state.get("error")
        workflow_input = state["workflow_input"]

        logger.error(
            "Workflow failed",
            workflow_id=workflow_input.workflow_id,
            error=str(error),
            error_kind=getattr(error, "kind", type(error).__name__),
            trace=state["agent_chain_trace"],
        )

        return {
            "error": error,
            "template": DEFAULT_ERROR_TEMPLATE,
            "template_data": {"success": False, "error": str(error)},
        }

    @workflow_node(WorkflowPhase.RENDER)
    async def render_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Render the final response"""

        workflow_input = state["workflow_input"]
        skill = state.get("skill")
        error = state.get("error")
        template = state["template"] or ""

        try:
            data = to_template_data(state["template_data"])

            if error is None and not workflow_input.is_action and skill is not None:
                data.setdefault("success", True)
                action_names = skill.action_names()
                if action_names:
                    data["actions"] = sorted(action_names)
                    template += available_actions_block(workflow_input.workflow_id)

            response = self.renderer.render(template, data)
        except TemplateFailureError as e:
            return {
                "response": f"Template rendering failed: {e}",
                "error": e,
            }

        return {"response": response, "error": error}

    async def _run_hook(self, skill: BaseSkill, phase: HookPhase, context: ExecutionContext, payload: Any) -> Any:
        hook = skill.get_hook(phase)
        if hook is None:
            return payload

        result = await self.sandbox.run(OperationKind.HOOK, phase.value, hook, context, payload)
        if not result.success:
            raise HookFailureError(phase.value, result.error)
        return result.value

    def _context(self, workflow_input: WorkflowInput, skill: BaseSkill) -> ExecutionContext:
        return ExecutionContext(
            workflow_id=workflow_input.workflow_id,
            message=workflow_input.message,
            agent_tag=getattr(workflow_input.agent, "tag", None),
            skill_tag=skill.tag,
            is_action=workflow_input.is_action,
            metadata=dict(workflow_input.metadata),
        )

    async def execute_workflow(self, workflow_input: WorkflowInput) -> WorkflowResult:
        """Process a message through the workflow"""

        workflow_input = workflow_input.model_copy(
            update={"is_action": is_action_command(workflow_input.message)}
        )

        logger.debug("Starting workflow execution", workflow_id=workflow_input.workflow_id,
                     is_action=workflow_input.is_action)

        initial_state: WorkflowState = {
            "workflow_input": workflow_input,
            "skill": None,
            "payload": None,
            "template": None,
            "template_data": None,
            "response": None,
            "error": None,
            "agent_chain_trace": [],
        }

        final_state = await self.workflow.ainvoke(initial_state)
        skill = final_state.get("skill")

        return WorkflowResult(
            response=final_state.get("response") or "",
            error=final_state.get("error"),
            workflow_id=workflow_input.workflow_id,
            skill_tag=skill.tag if skill is not None else None,
        )


async def execute_workflow(workflow_input: WorkflowInput, engine: Optional[WorkflowEngine] = None) -> WorkflowResult:
    """Execute one workflow with a default engine"""

    return await (engine or WorkflowEngine()).execute_workflow(workflow_input)
