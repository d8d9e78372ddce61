from .engine import create_context_manager, create_memory_repository

__all__ = ["create_context_manager", "create_memory_repository"]
