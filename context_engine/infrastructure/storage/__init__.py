from .pgvector_repository import PgVectorMemoryRepository, vector_literal, parse_vector

__all__ = ["PgVectorMemoryRepository", "vector_literal", "parse_vector"]
