"""Default template renderer for request descriptions.

Values may carry ``{{ name }}`` placeholders that are resolved against the
virtual user's ``context["vars"]``. Dotted names walk nested mappings.
"""

import re
from typing import Any, Callable, Mapping

TemplateRenderer = Callable[[Any, Mapping[str, Any]], Any]

_PLACEHOLDER = re.compile(r"{{\s*([\w$.-]+)\s*}}")

_MISSING = object()


def _lookup(variables: Mapping[str, Any], name: str) -> Any:
    value: Any = variables
    for part in name.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def render(template: Any, context: Mapping[str, Any]) -> Any:
    """
    Render a template value against a context.

    A string made of a single placeholder yields the raw variable value, so
    numbers and objects survive into JSON bodies. Unknown names are left in
    place. Mappings and lists are rendered recursively.

    Args:
        template: String, mapping, list or plain value
        context: Virtual user context holding a ``vars`` mapping

    Returns:
        The rendered value
    """
    if isinstance(template, str):
        variables = (context or {}).get("vars") or {}

        whole = _PLACEHOLDER.fullmatch(template.strip())
        if whole:
            value = _lookup(variables, whole.group(1))
            return template if value is _MISSING else value

        def substitute(match: "re.Match[str]") -> str:
            value = _lookup(variables, match.group(1))
            return match.group(0) if value is _MISSING else str(value)

        return _PLACEHOLDER.sub(substitute, template)

    if isinstance(template, Mapping):
        return {key: render(value, context) for key, value in template.items()}

    if isinstance(template, list):
        return [render(item, context) for item in template]

    return template
