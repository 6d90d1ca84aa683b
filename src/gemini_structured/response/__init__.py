"""
Response processing: turning generator text into JSON documents
"""

from .extraction import (
    METHOD_BRACKET_SCAN,
    METHOD_FENCED,
    METHOD_VERBATIM,
    extract_document,
    extract_json,
    find_json_candidate,
)
from .validation import response_validator, validate_document

__all__ = [
    # Central interface
    "extract_document",
    "extract_json",
    # Individual components
    "find_json_candidate",
    "response_validator",
    "validate_document",
    # Strategy names
    "METHOD_BRACKET_SCAN",
    "METHOD_FENCED",
    "METHOD_VERBATIM",
]
