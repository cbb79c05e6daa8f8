# tests/unit/llms/test_tool_schema.py

import pytest
from pydantic import BaseModel, Field

from watsonx_kit.llms._tool_schema import function_tool_schema, parameters_schema


class SearchInput(BaseModel):
    """Search for documents."""

    query: str = Field(description="The search query")
    limit: int = Field(default=10, description="Max results")


class TestToolSchemaConversion:
    def test_function_tool_schema(self) -> None:
        """Pydantic input models become the function's JSON schema."""
        schema = function_tool_schema("search", "Search the knowledge base", SearchInput)

        assert schema["type"] == "function"
        assert schema["function"]["name"] == "search"
        assert schema["function"]["description"] == "Search the knowledge base"
        assert "query" in schema["function"]["parameters"]["properties"]

    def test_schema_includes_field_descriptions(self) -> None:
        schema = function_tool_schema("search", None, SearchInput)

        query_prop = schema["function"]["parameters"]["properties"]["query"]
        assert query_prop.get("description") == "The search query"

    def test_no_description_or_parameters(self) -> None:
        """Optional keys are omitted rather than sent as null."""
        assert function_tool_schema("ping", None, None) == {
            "type": "function",
            "function": {"name": "ping"},
        }

    @pytest.mark.parametrize(
        "raw",
        [
            {"type": "object", "properties": {"city": {"type": "string"}}},
            {"type": "object", "properties": {}},
        ],
    )
    def test_dict_schema_passed_through(self, raw: dict) -> None:
        assert parameters_schema(raw) is raw
