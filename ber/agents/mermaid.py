from pydantic import BaseModel, Field

from ber.domain.models.agent_state import ExecutionContext
from ber.domain.skill.skill import Agent, Hooks, Skill


class MermaidSchema(BaseModel):
    """Structured response for every Mermaid diagram skill"""
    diagram_code: str = Field(description="Mermaid diagram source")
    explanation: str = Field(description="Short explanation of the diagram")


async def fence_diagram_code(context: ExecutionContext, response: MermaidSchema) -> None:
    """Wrap the diagram in a ```mermaid block unless it already is"""

    if not response.diagram_code.startswith("```mermaid"):
        response.diagram_code = "```mermaid\n" + response.diagram_code + "\n```"


def _diagram_template(title: str) -> str:
    return f"""### {title}

{{{{ diagram_code }}}}

### Explanation

{{{{ explanation }}}}"""


FlowchartDiagram = Skill[MermaidSchema](
    name="Mermaid",
    tag="mermaid",
    description="Creates simple flowchart diagrams using Mermaid syntax",
    prompt="""As a Mermaid diagram expert, create a flowchart based on the description.
Follow these guidelines:
- Use clear and concise node labels
- Create logical connections between nodes
- Use appropriate arrow types for relationships
- Keep the diagram clean and readable
- Ensure valid Mermaid flowchart syntax which can be rendered in markdown
- Don't include markdown code blocks in the response
""",
    template=_diagram_template("Flowchart Diagram"),
    llm_schema=MermaidSchema,
    hooks=Hooks(post_llm_request=fence_diagram_code),
)

PieChart = Skill[MermaidSchema](
    name="Pie Chart",
    tag="pie",
    description="Creates pie charts using Mermaid syntax",
    prompt="""As a Mermaid diagram expert, create a pie chart based on the provided data.
Follow these guidelines:
- Use clear section labels
- Include percentage or value for each section
- Ensure sections add up to 100%
- Keep the chart simple and readable
- Use valid Mermaid pie chart syntax which can be rendered in markdown
- Don't include markdown code blocks in the response""",
    template=_diagram_template("Pie Chart"),
    llm_schema=MermaidSchema,
    hooks=Hooks(post_llm_request=fence_diagram_code),
)

SequenceDiagram = Skill[MermaidSchema](
    name="Sequence",
    tag="sequence",
    description="Creates sequence diagrams showing interactions between components",
    prompt="""As a Mermaid diagram expert, create a sequence diagram based on the description.
Follow these guidelines:
- Define clear participant names/actors
- Show message flows with appropriate arrows (->>, -->, ->, -)
- Include activations and deactivations where relevant
- Use notes for additional context when needed
- Add loops, alt, opt, and par blocks where appropriate
- Keep the diagram clean and readable
- Ensure valid Mermaid sequence diagram syntax
- Don't include markdown code blocks in the response
""",
    template=_diagram_template("Sequence Diagram"),
    llm_schema=MermaidSchema,
    hooks=Hooks(post_llm_request=fence_diagram_code),
)


def create_mermaid_agent() -> Agent:
    return Agent(
        name="Mermaid Diagram",
        tag="mermaid",
        description="Diagram Agent: helps create and modify various types of Mermaid diagrams",
        skills=[FlowchartDiagram, PieChart, SequenceDiagram],
    )
