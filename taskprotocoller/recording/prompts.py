"""Prompt text interpolation for tasks with placeholder tokens."""
import re

_TOKEN_TEMPLATE = r"\{\{\s*%s\s*\}\}"


def interpolate_prompt(template: str, item, placeholder: str | None, field: str | None = None) -> str:
    """
    Replace ``{{placeholder}}`` tokens in *template* with *item*.

    When *field* is given and *item* is a dict (a structured sub-item), the
    value of ``item[field]`` is substituted instead of the whole item.
    """
    if not template or not placeholder:
        return template or ""
    value = item.get(field, "") if field and isinstance(item, dict) else item
    pattern = re.compile(_TOKEN_TEMPLATE % re.escape(placeholder))
    return pattern.sub(lambda _match: str(value), template)


def fill_placeholders(template: str, values: dict) -> str:
    """Substitute every scalar entry of *values* into *template*."""
    text = template or ""
    for name, value in values.items():
        if isinstance(value, (str, int, float)):
            text = interpolate_prompt(text, value, name)
    return text
