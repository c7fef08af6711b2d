# Path: core/vector_store/__init__.py
# Purpose: Package initializer for vector store interfaces and implementations.
# Layer: core/vector_store.
# Details: Exposes the base contract, the numpy-backed store, and a name-based factory.

from typing import Dict, Optional, Type

from .base import VectorStore
from .numpy_store import NumpyVectorStore

_REGISTRY: Dict[str, Type[VectorStore]] = {
    "numpy": NumpyVectorStore,
}


def make_vector_store(name: str, dim: int, metric: str = "l2", path: Optional[str] = None) -> VectorStore:
    """Instantiate a vector store by name and validate its dimension and metric once.

    ``path`` makes the store durable; without it the index lives in memory only.
    """

    cls = _REGISTRY.get(name)
    if cls is None:
        available = ", ".join(sorted(_REGISTRY))
        raise ValueError(f"Unknown vector store: '{name}'. Available: {available}")
    store = cls(dim=dim, name=name, metric=metric, path=path)
    store.validate_configuration(dim, metric)
    return store


__all__ = ["VectorStore", "NumpyVectorStore", "make_vector_store"]
