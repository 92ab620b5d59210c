"""ragfs: content-addressed files, chunks and embeddings for retrieval-augmented chat."""

__version__ = "0.1.0"
