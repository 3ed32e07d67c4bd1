"""
Knowledge feature: positional text chunking.

Fixed-size character windows with a fixed overlap. No sentence or
paragraph awareness: the same (text, size, overlap) always yields the
same chunks.
"""

from tutor_agent.core.exceptions import ValidationError

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


def validate_chunking(size: int, overlap: int) -> None:
    """Reject parameters that would never advance the window."""
    if size <= 0:
        raise ValidationError("Chunk size must be positive", detail=f"size={size}")
    if overlap < 0:
        raise ValidationError("Chunk overlap cannot be negative", detail=f"overlap={overlap}")
    if overlap >= size:
        raise ValidationError(
            "Chunk overlap must be smaller than chunk size",
            detail=f"size={size}, overlap={overlap}",
        )


def chunk_text(
    text: str,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split text into overlapping windows.

    Starting at offset 0, emit ``text[offset:offset + size]`` and advance by
    ``size - overlap`` until the offset reaches the end of the text.

    Args:
        text: Document text.
        size: Characters per chunk.
        overlap: Characters shared by consecutive chunks.

    Returns:
        Ordered chunks; empty for empty text.

    Raises:
        ValidationError: If size/overlap would not terminate.
    """
    validate_chunking(size, overlap)

    step = size - overlap
    return [text[offset:offset + size] for offset in range(0, len(text), step)]
