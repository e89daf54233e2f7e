"""
Perceptual frequency selection for SMD0.

A block keeps a fixed number of coefficients. Instead of a plain top-N by
magnitude, the remaining power is split into equal-mass buckets scanned
from the highest frequency down, and the strongest coefficient of each
bucket is kept. Repeating this over the leftover power spreads the picks
across the spectrum in proportion to where the energy is.
"""

from typing import Iterable, List


def select_frequencies(powers: Iterable[float], table_size: int) -> List[int]:
    """
    Picks up to `table_size` coefficient indices from a power spectrum.

    Args:
        powers: Non-negative per-coefficient powers (dead-zoned magnitudes).
        table_size: Number of coefficients a block can carry.

    Returns:
        The selected indices in ascending order. Fewer than `table_size`
        are returned when the spectrum runs out of power.
    """
    remaining = [float(p) for p in powers]
    size = len(remaining)
    selected: List[int] = []
    if size == 0 or table_size <= 0:
        return selected

    while len(selected) < table_size:
        # Accumulate in scan order so a full scan reaches exactly this total
        total = 0.0
        for j in range(size - 1, -1, -1):
            total += remaining[j]
        if total <= 0:
            break

        bucket_mass = total / table_size
        picked_this_pass = 0
        running = 0.0
        max_index = size - 1
        max_power = remaining[max_index]
        for j in range(size - 1, -1, -1):
            if len(selected) >= table_size:
                break
            power = remaining[j]
            running += power
            if power > max_power:
                max_power = power
                max_index = j
            if running >= bucket_mass:
                selected.append(max_index)
                remaining[max_index] = 0.0
                picked_this_pass += 1
                running = 0.0
                if j > 0:
                    max_index = j - 1
                    max_power = remaining[max_index]

        if picked_this_pass == 0:
            strongest = max(range(size), key=remaining.__getitem__)
            selected.append(strongest)
            remaining[strongest] = 0.0

    return sorted(selected)


def pad_selection(selected: List[int], frequency_upper_limit: int, target: int) -> List[int]:
    """
    Tops a selection up with the lowest-numbered unselected indices until it
    holds min(target, frequency_upper_limit) distinct indices.
    Index-mode selectors always carry `target` fields, so every field must
    name a coefficient the magnitude table accounts for.
    """
    wanted = min(target, frequency_upper_limit)
    if len(selected) >= wanted:
        return sorted(selected)
    chosen = set(selected)
    for index in range(frequency_upper_limit):
        if len(chosen) >= wanted:
            break
        chosen.add(index)
    return sorted(chosen)
