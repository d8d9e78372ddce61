from .langchain_adapters import LangChainCompleter, LangChainEmbedder

__all__ = ["LangChainCompleter", "LangChainEmbedder"]
