"""Resilient structured output from unreliable text generators.

Typical use::

    from gemini_structured import ConstructConfig, GeminiGenerator, construct

    result = construct(
        ConstructConfig(
            base_prompt="Return a user object",
            schema='{"name": "string"}',
            generator=GeminiGenerator(),
        )
    )
    if result.ok:
        print(result.document)
    else:
        print(result.error_kind, result.error_message)
"""

import importlib.metadata
import logging

from .client import CallableGenerator, GeminiGenerator, TextGenerator
from .config import (
    ConstructConfig,
    StructuredSettings,
    get_settings,
    settings_scope,
)
from .core.types import ConstructionResult, ErrorKind
from .engine import RetryEngine, construct
from .exceptions import (
    ConfigurationError,
    ConstructionError,
    GeminiStructuredError,
    GeneratorError,
)
from .instrumentation import (
    AttemptCallbacks,
    AttemptObserver,
    InMemoryObserver,
    LoggingObserver,
    fanout,
)
from .prompts import build_simple_schema
from .response import extract_document, extract_json

# Version handling
try:
    __version__ = importlib.metadata.version("gemini-structured")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Set up a null handler for the library's root logger.
# This prevents 'No handler found' errors if the library is used
# without any logging configuration.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Primary entry points
    "construct",
    "RetryEngine",
    "ConstructConfig",
    "ConstructionResult",
    "ErrorKind",
    # Generators
    "TextGenerator",
    "CallableGenerator",
    "GeminiGenerator",
    # Instrumentation
    "AttemptObserver",
    "AttemptCallbacks",
    "LoggingObserver",
    "InMemoryObserver",
    "fanout",
    # Extraction and prompt helpers
    "extract_document",
    "extract_json",
    "build_simple_schema",
    # Configuration
    "StructuredSettings",
    "get_settings",
    "settings_scope",
    # Exceptions
    "GeminiStructuredError",
    "ConfigurationError",
    "GeneratorError",
    "ConstructionError",
]
