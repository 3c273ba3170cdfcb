"""Natural-language to SQL generators, the retry decorator and the factory."""

from .factory import SqlGeneratorFactory
from .gemini_generator import GeminiSqlGenerator
from .ollama_generator import OllamaSqlGenerator
from .openai_generator import OpenAISqlGenerator
from .retry import RetryingSqlGenerator, is_retryable

__all__ = [
    "GeminiSqlGenerator",
    "OllamaSqlGenerator",
    "OpenAISqlGenerator",
    "RetryingSqlGenerator",
    "SqlGeneratorFactory",
    "is_retryable",
]
