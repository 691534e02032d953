from .writer import WriterHandle, open_store

__all__ = ["WriterHandle", "open_store"]
