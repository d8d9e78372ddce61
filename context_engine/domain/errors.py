class ContextEngineError(Exception):
    """Base error for the context engine"""


class DataIntegrityError(ContextEngineError, ValueError):
    """Raised when a caller hands the engine data that violates an invariant"""


class DimensionMismatchError(DataIntegrityError):
    """Raised when two vectors of different dimension are compared"""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class MissingEmbeddingError(DataIntegrityError):
    """Raised when a memory is created without its embedding"""


class EmbeddingError(ContextEngineError):
    """Raised when the embedding provider fails or returns an unusable vector"""


class VectorStoreError(ContextEngineError):
    """Raised when the memory repository cannot serve a query"""


class ExtractionError(ContextEngineError):
    """Raised when structured data cannot be recovered from a model reply"""
