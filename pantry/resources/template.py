"""
Template resource - render a Jinja2 template from the cookbook onto the target.
"""

from typing import Any, Dict, Optional, Union

from jinja2 import (
    Environment, FileSystemLoader, StrictUndefined, TemplateNotFound, TemplateSyntaxError, UndefinedError,
)

from pantry.errors import BindingError, RenderError, ResolutionError
from pantry.logging import get_logger
from pantry.resources.file import ManagedFile
from pantry.values import RandomValues, has_generated, resolve_variables

logger = get_logger(__name__)


class Template(ManagedFile):
    """
    A file rendered from a template in the cookbook's templates/ directory.

    Every variable the template references must be bound; an unbound
    reference fails the resource instead of rendering an empty string.
    Variables declared with generated_uuid() are resolved through the
    executor's value provider once per evaluation.

    Example:
        Template("/qux.txt",
                 source="app_setup/qux.txt.j2",
                 variables={"var": generated_uuid("qux.txt/var")})
    """

    def __init__(
        self,
        path: str,
        source: str,
        variables: Optional[Dict[str, Any]] = None,
        owner: Optional[str] = None,
        group: Optional[str] = None,
        mode: Union[str, int, None] = None,
        action: str = "create",
        **options
    ):
        super().__init__(path, source, owner=owner, group=group, mode=mode, action=action, **options)
        self.variables = dict(variables or {})
        self.rendered_variables: Dict[str, Any] = {}

    def resource_type(self) -> str:
        return "template"

    @property
    def uses_generated_values(self) -> bool:
        return has_generated(self.variables)

    def render(self) -> bytes:
        if self._cookbook is None:
            raise ResolutionError(f"{self.id}: no cookbook to resolve {self.source!r} against")

        # Validates the reference stays inside templates/ and exists
        self._cookbook.template(self.source)

        env = Environment(
            loader=FileSystemLoader(str(self._cookbook.template_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        try:
            template = env.get_template(self.source)
        except TemplateNotFound as e:
            raise ResolutionError(f"Template not found in cookbook {self._cookbook.name}: {e.name}") from e
        except TemplateSyntaxError as e:
            raise RenderError(f"Template {self.source} line {e.lineno}: {e.message}") from e

        self.rendered_variables = resolve_variables(self.variables, self._values or RandomValues())
        try:
            text = template.render(**self.rendered_variables)
        except UndefinedError as e:
            raise BindingError(f"Template {self.source} for {self.path}: {e.message}") from e

        logger.debug("Rendered %s with variables %s", self.source, sorted(self.rendered_variables))
        return text.encode("utf-8")
