from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from pydantic import BaseModel

from ber.domain.context.memory.memory_store import MemoryStore
from ber.domain.errors import SkillError
from ber.domain.execution.sandbox import Sandbox
from ber.domain.orchestration.workflow_engine import WorkflowEngine
from ber.domain.skill.skill import Agent, Hooks, Skill


def run(coro):  # noqa: ANN001
    return asyncio.run(coro)


class DNSRecord(BaseModel):
    type: str
    name: str
    content: List[str]
    ttl: int
    proxied: bool


class DNSRecordSchema(BaseModel):
    records: List[DNSRecord]


class FakeLLMClient:
    """LLM double with canned structured responses and embeddings"""

    def __init__(
        self,
        response: Any = None,
        embeddings: Optional[Dict[str, List[float]]] = None,
        error: Optional[Exception] = None,
        default_embedding: Optional[List[float]] = None,
    ):
        self.response = response
        self.embeddings = embeddings or {}
        self.error = error
        self.default_embedding = default_embedding
        self.queries: List[Dict[str, Any]] = []
        self.embedding_requests: List[str] = []

    async def query_with_schema(self, messages, schema):  # noqa: ANN001
        self.queries.append({"messages": list(messages), "schema": schema})
        if self.error is not None:
            raise self.error
        return self.response

    async def get_embedding(self, text: str) -> List[float]:
        self.embedding_requests.append(text)
        if text in self.embeddings:
            return self.embeddings[text]
        if self.default_embedding is not None:
            return self.default_embedding
        raise RuntimeError(f"no embedding for {text!r}")


ALLOWED_DOMAINS = ("example.com",)

DNS_RESPONSE = {
    "records": [
        {"type": "A", "name": "www.example.com", "content": ["192.0.2.1"], "ttl": 300, "proxied": False}
    ]
}

DNS_TEMPLATE = """# DNS Configuration
{% for record in records %}
## Record: {{ record.name }}
Type: {{ record.type }}
TTL: {{ record.ttl }}
{% endfor %}"""


def validate_dns_record(context, schema: DNSRecordSchema) -> None:  # noqa: ANN001
    if not schema.records:
        raise SkillError("no records provided")


def validate_allowed_domains(context, schema: DNSRecordSchema) -> None:  # noqa: ANN001
    for record in schema.records:
        if not record.name.endswith(ALLOWED_DOMAINS):
            raise SkillError(f"invalid domain: {record.name}")


def make_dns_skill(
    actions: Optional[Dict[str, Any]] = None,
    validators: Optional[Dict[str, Any]] = None,
    hooks: Optional[Hooks] = None,
) -> Skill[DNSRecordSchema]:
    return Skill[DNSRecordSchema](
        name="DNS Management",
        tag="dns",
        description="Manages DNS records",
        prompt="As a Cloudflare expert, help manage DNS records.",
        template=DNS_TEMPLATE,
        llm_schema=DNSRecordSchema,
        actions=actions if actions is not None else {},
        validator_map=validators if validators is not None else {
            "Valid DNS Record": validate_dns_record,
            "Allowed Domains": validate_allowed_domains,
        },
        hooks=hooks or Hooks(),
    )


def make_agent(*skills) -> Agent:  # noqa: ANN002
    return Agent(name="Cloudflare", tag="cloudflare", description="Cloudflare agent", skills=list(skills))


def fixed_matcher(skill):  # noqa: ANN001
    async def matcher(message, agent):  # noqa: ANN001
        return skill

    return matcher


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def engine() -> WorkflowEngine:
    return WorkflowEngine(sandbox=Sandbox(timeout=0.5))
