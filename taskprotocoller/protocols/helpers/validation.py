"""
Validation rules for protocol definitions.

Each function returns error messages instead of raising so callers (model
``clean``, forms, the preview endpoint) can report them in their own way.
"""
from taskprotocoller.protocols.registry import TASK_REGISTRY


def validate_protocol_params(category: str, params) -> list[str]:
    """
    Check a protocol task's parameters against the registry.

    Unknown categories, unknown parameter names and values outside a
    parameter's allowed ``values`` are reported.
    """
    if category not in TASK_REGISTRY:
        return [f"Unknown task category '{category}'"]
    if params in (None, ""):
        return []
    if not isinstance(params, dict):
        return ["Task parameters must be an object"]

    allowed = TASK_REGISTRY[category].get("params", {})
    errors = []
    for name, value in params.items():
        if name not in allowed:
            errors.append(f"Unknown parameter '{name}' for '{category}'")
            continue
        values = allowed[name].get("values")
        if values is not None and value not in values:
            errors.append(
                f"Value '{value}' is not allowed for '{name}' (expected one of: {', '.join(values)})"
            )
        if name == "repeat" and (not isinstance(value, int) or isinstance(value, bool) or value < 1):
            errors.append("'repeat' must be a positive whole number")
    return errors


def validate_protocol(data: dict) -> dict:
    """
    Return ``{field: message}`` for a protocol definition dict with ``name``,
    ``language`` and ``tasks`` keys. An empty dict means valid.
    """
    errors = {}
    if not str(data.get("name") or "").strip():
        errors["name"] = "A protocol name is required."
    if not data.get("language"):
        errors["language"] = "A protocol language is required."
    if not data.get("tasks"):
        errors["tasks"] = "A protocol needs at least one task."
    return errors
