# src/watsonx_kit/llms/_tool_schema.py

"""Internal module for turning tool input definitions into chat tool schemas.

This is infrastructure, not behavior. Pure data transformation.
"""

from typing import Any

from pydantic import BaseModel


def parameters_schema(input_schema: type[BaseModel] | dict[str, Any] | None) -> dict[str, Any] | None:
    """JSON schema for a tool's parameters.

    Args:
        input_schema: A Pydantic model class, an already-built JSON schema,
            or None for a tool that takes no arguments.

    Returns:
        The JSON schema dict, or None.
    """
    if input_schema is None:
        return None
    if isinstance(input_schema, dict):
        return input_schema
    return input_schema.model_json_schema()


def function_tool_schema(
    name: str,
    description: str | None,
    input_schema: type[BaseModel] | dict[str, Any] | None,
) -> dict[str, Any]:
    """Chat ``tools`` entry in the function-calling format.

    Args:
        name: Function name the model will call.
        description: What the function does, shown to the model.
        input_schema: See ``parameters_schema``.

    Returns:
        Dict with ``type`` and ``function`` keys.
    """
    function: dict[str, Any] = {"name": name}
    if description:
        function["description"] = description
    parameters = parameters_schema(input_schema)
    if parameters is not None:
        function["parameters"] = parameters
    return {"type": "function", "function": function}
