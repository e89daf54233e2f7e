"""
Common utility functions for the pysmd0 project.
"""


def ceil_log2(value: int) -> int:
    """
    Returns ceil(log2(value)) for a positive integer, computed exactly.

    Args:
        value: A positive integer.

    Returns:
        The number of bits needed to index `value` distinct items
        (0 for a value of 1).
    """
    if value <= 0:
        raise ValueError(f"ceil_log2 requires a positive value, got {value}")
    return (value - 1).bit_length()


def round_up(value: int, multiple: int) -> int:
    """Rounds a non-negative integer up to the next multiple of `multiple`."""
    return -(-value // multiple) * multiple
