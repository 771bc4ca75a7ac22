from __future__ import annotations

from codemode_gateway.mcp_client.validation import (
    dice_similarity,
    find_similar_param,
    format_validation_error,
    generate_example_value,
    generate_schema_summary,
    validate_args,
)

SCHEMA = {
    "type": "object",
    "properties": {
        "database": {"type": "string", "enum": ["pubmed", "gene", "protein"]},
        "term": {"type": "string"},
        "retmax": {"type": "integer"},
        "ids": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["database", "term"],
    "additionalProperties": False,
}


def test_valid_args_pass() -> None:
    result = validate_args({"database": "pubmed", "term": "p53", "retmax": 5}, SCHEMA)
    assert result.valid is True
    assert result.errors == []


def test_numeric_strings_are_accepted_for_numbers() -> None:
    assert validate_args({"database": "gene", "term": "x", "retmax": "20"}, SCHEMA).valid


def test_missing_required_parameter() -> None:
    result = validate_args({"database": "pubmed"}, SCHEMA)
    assert not result.valid
    assert result.errors[0].path == "term"
    assert result.errors[0].message == "Missing required parameter: term"
    assert result.suggestions[0] == 'Add required parameter "term": {"term": "example"}'


def test_misspelled_parameter_gets_did_you_mean() -> None:
    result = validate_args({"database": "pubmed", "term": "x", "retmx": 5}, SCHEMA)
    assert not result.valid
    assert 'Did you mean "retmax" instead of "retmx"?' in result.suggestions


def test_unknown_parameter_lists_valid_ones() -> None:
    result = validate_args({"database": "pubmed", "term": "x", "zzz": 1}, SCHEMA)
    assert any(s.startswith("Valid parameters: database, term") for s in result.suggestions)


def test_open_objects_tolerate_unrelated_extra_parameters() -> None:
    schema = dict(SCHEMA, additionalProperties=True)
    assert validate_args({"database": "pubmed", "term": "x", "zzz": 1}, schema).valid


def test_type_and_enum_violations() -> None:
    result = validate_args({"database": "nucleotide", "term": 5, "ids": "A1"}, SCHEMA)
    messages = [e.message for e in result.errors]
    assert 'Value "nucleotide" is not in allowed values' in messages
    assert "Expected string, got number" in messages
    assert "Expected array, got string" in messages
    assert 'Wrap "ids" in array: ids: ["A1"]' in result.suggestions


def test_no_schema_accepts_anything() -> None:
    assert validate_args({"anything": 1}, None).valid


def test_format_validation_error_mentions_schema_helper() -> None:
    result = validate_args({}, SCHEMA)
    text = format_validation_error(result, "entrez_query", "entrez")
    assert text.startswith("Parameter validation failed for entrez/entrez_query:")
    assert "helpers.entrez.get_tool_schema('entrez_query')" in text
    assert format_validation_error(validate_args({"database": "gene", "term": "x"}, SCHEMA), "t", "s") == ""


def test_schema_summary() -> None:
    assert generate_schema_summary(SCHEMA) == "{ database: string, term: string, retmax?: integer, ids?: array }"
    assert generate_schema_summary({"type": "object", "properties": {}}) == "No parameters"
    assert generate_schema_summary(None) == "No schema available"


def test_similarity_helpers() -> None:
    assert dice_similarity("term", "term") == 1.0
    assert dice_similarity("a", "b") == 0.0
    assert find_similar_param("Databse", ["database", "term"]) == "database"
    assert find_similar_param("xyz", ["database", "term"]) is None


def test_generate_example_value() -> None:
    assert generate_example_value({"type": "string", "description": "Gene ID"}) == "example_id"
    assert generate_example_value({"type": "integer", "minimum": 1}) == 1
    assert generate_example_value({"enum": ["a", "b"]}) == "a"
    assert generate_example_value({"default": 7}) == 7
