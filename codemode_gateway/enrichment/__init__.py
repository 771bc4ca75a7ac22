"""Response enrichment: structured-content extraction, legacy text parsing, ID cross-references."""

from .graphql import check_graphql_response, find_null_fields
from .id_enrichment import IdEnricher, IdPattern, ServerCapabilities
from .markdown import parse_markdown_table
from .structured import (
    StructuredData,
    extract_structured_data,
    generate_compliance_report,
    validate_structured_content,
)
from .transform import transform_response

__all__ = [
    "IdEnricher",
    "IdPattern",
    "ServerCapabilities",
    "StructuredData",
    "check_graphql_response",
    "extract_structured_data",
    "find_null_fields",
    "generate_compliance_report",
    "parse_markdown_table",
    "transform_response",
    "validate_structured_content",
]
