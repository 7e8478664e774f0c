"""Services for Ask the Menu."""
from .menu_loader import MenuLoader, MenuLoaderError
from .menu_chunker import MenuChunker
from .embedding_model import EmbeddingModel, embed
from .chunk_store import ChunkStore, InMemoryChunkStore, create_chunk_store
from .retrieval_engine import RetrievalEngine, build_context
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError

__all__ = ['MenuLoader', 'MenuLoaderError', 'MenuChunker', 'EmbeddingModel', 'embed', 'ChunkStore', 'InMemoryChunkStore', 'create_chunk_store', 'RetrievalEngine', 'build_context', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError']
