"""
Deterministic template rendering on top of jinja2.
"""
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from converge.errors import ResourceError


class TemplateRenderer:
    """Renders templates from the declaration's directory or from strings.

    Undefined variables are errors rather than empty strings, so a typo in
    a context key cannot silently produce a half-empty config file.
    """

    def __init__(self, search_path: Optional[List[str]] = None):
        self.env = Environment(
            loader=FileSystemLoader(search_path or ["."]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, template: str, context: Dict[str, Any]) -> str:
        try:
            return self.env.get_template(template).render(**context)
        except TemplateError as exc:
            raise ResourceError("File", f"template '{template}': {exc}") from exc

    def render_string(self, source: str, context: Dict[str, Any]) -> str:
        try:
            return self.env.from_string(source).render(**context)
        except TemplateError as exc:
            raise ResourceError("Template", str(exc)) from exc
