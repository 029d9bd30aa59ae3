from elearning.models.document import Document

__all__ = [
    "Document",
]
