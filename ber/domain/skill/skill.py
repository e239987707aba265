from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, Type, TypeVar
import asyncio
import inspect

from ber.domain.models.agent_state import ExecutionContext
from ber.domain.skill.schema import SchemaDescriptor

T = TypeVar("T")

# Typed callback over a payload; plain functions run in a worker thread
Handler = Callable[[ExecutionContext, Any], Any]

# Erased callback the engine runs: takes any value, returns the (possibly replaced) payload
ErasedHandler = Callable[[ExecutionContext, Any], Awaitable[Any]]


class HookPhase(str, Enum):
    """Lifecycle points a skill can hook into"""
    PRE_LLM_REQUEST = "PreLLMRequest"
    POST_LLM_REQUEST = "PostLLMRequest"
    PRE_VALIDATE = "PreValidate"
    POST_VALIDATE = "PostValidate"
    PRE_ACTION = "PreAction"
    POST_ACTION = "PostAction"


@dataclass(eq=False)
class Hooks:
    """Optional lifecycle callbacks of a skill"""
    pre_llm_request: Optional[Handler] = None
    post_llm_request: Optional[Handler] = None
    pre_validate: Optional[Handler] = None
    post_validate: Optional[Handler] = None
    pre_action: Optional[Handler] = None
    post_action: Optional[Handler] = None

    def get(self, phase: HookPhase) -> Optional[Handler]:
        return {
            HookPhase.PRE_LLM_REQUEST: self.pre_llm_request,
            HookPhase.POST_LLM_REQUEST: self.post_llm_request,
            HookPhase.PRE_VALIDATE: self.pre_validate,
            HookPhase.POST_VALIDATE: self.post_validate,
            HookPhase.PRE_ACTION: self.pre_action,
            HookPhase.POST_ACTION: self.post_action,
        }[phase]


async def _call(fn: Handler, context: ExecutionContext, payload: Any) -> Any:
    if inspect.iscoroutinefunction(fn):
        return await fn(context, payload)
    result = await asyncio.to_thread(fn, context, payload)
    if inspect.isawaitable(result):
        result = await result
    return result


class BaseSkill(ABC):
    """Type-erased capability view of a skill used by the workflow engine"""

    name: str
    tag: str
    description: str
    prompt: str
    template: str

    @property
    @abstractmethod
    def schema(self) -> Type[Any]:
        """Payload schema the LLM response is decoded into"""

    @abstractmethod
    def convert(self, value: Any) -> Any:
        """Recover the concrete payload type from an erased value"""

    @abstractmethod
    def dump(self, payload: Any) -> Any:
        """Encode a payload into JSON-compatible data"""

    @abstractmethod
    def prototype(self) -> Any:
        """Fresh copy of the declared default payload, or None when there is none"""

    @abstractmethod
    def action_names(self) -> List[str]:
        pass

    @abstractmethod
    def get_action(self, name: str) -> Optional[ErasedHandler]:
        pass

    @abstractmethod
    def validators(self) -> List[Tuple[str, ErasedHandler]]:
        pass

    @abstractmethod
    def get_hook(self, phase: HookPhase) -> Optional[ErasedHandler]:
        pass

    def get_info(self) -> Dict[str, Any]:
        """Get skill information"""
        return {
            "name": self.name,
            "tag": self.tag,
            "description": self.description,
            "actions": self.action_names(),
            "validators": [name for name, _ in self.validators()],
        }


@dataclass(eq=False)
class Skill(BaseSkill, Generic[T]):
    """A named capability bundle over payload schema T"""
    name: str
    tag: str
    description: str
    prompt: str
    template: str
    llm_schema: Type[T]
    actions: Dict[str, Handler] = field(default_factory=dict)
    validator_map: Dict[str, Handler] = field(default_factory=dict)
    hooks: Hooks = field(default_factory=Hooks)
    default: Optional[T] = None

    def __post_init__(self):
        self._descriptor: SchemaDescriptor[T] = SchemaDescriptor(self.llm_schema)

    @property
    def schema(self) -> Type[T]:
        return self.llm_schema

    def convert(self, value: Any) -> T:
        return self._descriptor.convert(value)

    def dump(self, payload: Any) -> Any:
        return self._descriptor.dump(payload)

    def prototype(self) -> Optional[T]:
        # Never an unvalidated placeholder
        if self.default is None:
            return None
        return self.convert(self.dump(self.default))

    def action_names(self) -> List[str]:
        return list(self.actions)

    def get_action(self, name: str) -> Optional[ErasedHandler]:
        action = self.actions.get(name)
        if action is None:
            return None
        return self._erase(action)

    def validators(self) -> List[Tuple[str, ErasedHandler]]:
        # Validators see a copy so they cannot mutate the payload
        return [(name, self._erase(fn, copy=True)) for name, fn in self.validator_map.items()]

    def get_hook(self, phase: HookPhase) -> Optional[ErasedHandler]:
        hook = self.hooks.get(phase)
        if hook is None:
            return None
        return self._erase_hook(hook)

    def _erase(self, fn: Handler, copy: bool = False) -> ErasedHandler:
        async def erased(context: ExecutionContext, value: Any) -> Any:
            payload = self.convert(value)
            if copy:
                payload = self.convert(self.dump(payload))
            await _call(fn, context, payload)
            return None

        erased.__name__ = getattr(fn, "__name__", "handler")
        return erased

    def _erase_hook(self, fn: Handler) -> ErasedHandler:
        async def erased(context: ExecutionContext, value: Any) -> Any:
            payload = self.convert(value)
            replacement = await _call(fn, context, payload)
            if replacement is not None:
                return self.convert(replacement)
            return payload

        erased.__name__ = getattr(fn, "__name__", "hook")
        return erased


@dataclass(eq=False)
class Agent:
    """A named collection of skills presented as one addressable entity"""
    name: str
    tag: str
    description: str
    skills: List[BaseSkill] = field(default_factory=list)

    def get_skill_by_tag(self, tag: str) -> Optional[BaseSkill]:
        for skill in self.skills:
            if skill.tag == tag:
                return skill
        return None

    def get_info(self) -> Dict[str, Any]:
        """Get agent information"""
        return {
            "name": self.name,
            "tag": self.tag,
            "description": self.description,
            "skills": [skill.get_info() for skill in self.skills],
        }
