"""Logic-less placeholder substitution for template bodies.

A template body is a mapping whose string leaves may contain ``{{ name }}``
placeholders. Rendering walks the body and substitutes each placeholder with
the matching value from the data; dotted names such as ``{{ user.name }}``
reach into nested mappings. Keys and non-string leaves are copied as they are.

Only plain substitution is allowed. Blocks, filters, calls, tests and
arithmetic are rejected when the template is compiled, so a template can
never branch or loop.

Examples:
    >>> render_body({"greeting": "Hello {{name}}"}, {"name": "Ann"})
    {'greeting': 'Hello Ann'}
    >>> render_body({"n": 1, "tags": ["{{a}}"]}, {"a": "x"})
    {'n': 1, 'tags': ['x']}
"""

from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from jinja2 import ChainableUndefined, StrictUndefined, TemplateSyntaxError, UndefinedError, nodes
from jinja2.environment import Template
from jinja2.sandbox import SandboxedEnvironment

from change_relay.exceptions import RenderError
from change_relay.models import get_field
from change_relay.observability.logging import get_logger

logger = get_logger(__name__)

# Name of the variable that holds non-mapping data
VALUE_NAME = "value"

_MISSING = object()

_ALLOWED_NODES = (nodes.Output, nodes.TemplateData, nodes.Name, nodes.Getattr)


def _finalize(value: Any) -> Any:
    return "" if value is None else value


class _SubstitutionEnvironment(SandboxedEnvironment):
    """Sandbox where dotted names only ever look up mapping keys."""

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, Mapping):
            try:
                return obj[attribute]
            except KeyError:
                return self.undefined(obj=obj, name=attribute)
        return super().getattr(obj, attribute)


_STRICT_ENV = _SubstitutionEnvironment(
    undefined=StrictUndefined,
    autoescape=False,
    finalize=_finalize,
    keep_trailing_newline=True,
)
_LENIENT_ENV = _SubstitutionEnvironment(
    undefined=ChainableUndefined,
    autoescape=False,
    finalize=_finalize,
    keep_trailing_newline=True,
)


def _placeholder_path(node: nodes.Node) -> str:
    if isinstance(node, nodes.Name):
        return node.name
    if isinstance(node, nodes.Getattr):
        return f"{_placeholder_path(node.node)}.{node.attr}"
    raise RenderError(f"Unsupported template expression: {type(node).__name__}")


@lru_cache(maxsize=512)
def _compile(source: str, strict: bool) -> tuple[Template, tuple[str, ...]]:
    """Compile one template string and list its placeholders.

    Raises:
        RenderError: If the string is not valid or uses more than substitution.
    """
    env = _STRICT_ENV if strict else _LENIENT_ENV
    try:
        ast = env.parse(source)
    except TemplateSyntaxError as e:
        raise RenderError(f"Invalid template syntax: {e}") from e

    placeholders: list[str] = []
    for node in ast.find_all(nodes.Node):
        if not isinstance(node, _ALLOWED_NODES):
            raise RenderError(
                f"Template uses {type(node).__name__}; only {{{{ name }}}} placeholders are allowed"
            )
    for output in ast.find_all(nodes.Output):
        for child in output.nodes:
            if not isinstance(child, nodes.TemplateData):
                placeholders.append(_placeholder_path(child))

    return env.from_string(ast), tuple(placeholders)


def render_string(source: str, context: Mapping[str, Any], strict: bool = True) -> str:
    """Render one template string.

    Args:
        source: String possibly containing ``{{ name }}`` placeholders.
        context: Values to substitute.
        strict: Raise on a missing value instead of substituting "".

    Returns:
        The rendered string.

    Raises:
        RenderError: If a placeholder is missing in strict mode or the
            template is not plain substitution.
    """
    if "{{" not in source:
        return source

    template, placeholders = _compile(source, strict)
    for placeholder in placeholders:
        if get_field(context, placeholder, default=_MISSING) is _MISSING:
            if strict:
                raise RenderError(
                    f"Template placeholder '{placeholder}' has no value in data",
                    placeholder=placeholder,
                )
            logger.warning("template.placeholder_missing", placeholder=placeholder)

    try:
        return template.render(dict(context))
    except UndefinedError as e:
        raise RenderError(f"Template rendering failed: {e}") from e


def render_body(body: Any, data: Any, strict: bool = True) -> Any:
    """Render every string leaf of a template body against ``data``.

    Args:
        body: Template body, usually a mapping.
        data: Values for the placeholders. A non-mapping value is exposed
            to the template as ``value``.
        strict: Raise on a missing value instead of substituting "".

    Returns:
        A new structure shaped like ``body`` with placeholders substituted.

    Raises:
        RenderError: See ``render_string``.
    """
    context = dict(data) if isinstance(data, Mapping) else {VALUE_NAME: data}
    return _render_node(body, context, strict)


def _render_node(node: Any, context: Mapping[str, Any], strict: bool) -> Any:
    if isinstance(node, str):
        return render_string(node, context, strict)
    if isinstance(node, Mapping):
        return {key: _render_node(value, context, strict) for key, value in node.items()}
    if isinstance(node, list):
        return [_render_node(item, context, strict) for item in node]
    return node

