from typing import Any, Dict
import json
import structlog

from jinja2 import Environment, TemplateError

from ber.domain.errors import ConversionError, TemplateFailureError
from ber.domain.skill.schema import to_json

logger = structlog.get_logger(__name__)


def to_template_data(data: Any) -> Dict[str, Any]:
    """Turn response data into a string-keyed map via a JSON round trip"""

    try:
        converted = json.loads(to_json(data))
    except ConversionError as e:
        raise TemplateFailureError(f"failed to marshal response: {e}") from e

    if not isinstance(converted, dict):
        raise TemplateFailureError(f"response must encode to an object, got {type(converted).__name__}")
    return converted


class TemplateRenderer:
    """Renders skill output templates"""

    def __init__(self, environment: Environment = None):
        self.environment = environment or Environment(autoescape=False, keep_trailing_newline=True)

    def render(self, template: str, data: Any) -> str:
        """Render template against data"""

        context = to_template_data(data)

        try:
            compiled = self.environment.from_string(template)
            return compiled.render(context)
        except (TemplateError, TypeError) as e:
            logger.error("Template rendering failed", error=str(e))
            raise TemplateFailureError(f"failed to render template: {e}") from e
