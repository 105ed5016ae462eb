"""Pronounceable random keys for stored results."""

import random
from typing import Optional

CONSONANTS = "bcdfghjklmnpqrstvwxyz"
VOWELS = "aeiou"


def _syllable(rng: random.Random) -> str:
    x = rng.random()

    if x < 0.333:
        return rng.choice(VOWELS) + rng.choice(CONSONANTS)

    if x < 0.666:
        return rng.choice(CONSONANTS) + rng.choice(VOWELS)

    return rng.choice(CONSONANTS) + rng.choice(VOWELS) + rng.choice(CONSONANTS)


def generate_key(
    min_syllables: int = 5,
    max_syllables: int = 6,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Generate a word-like key such as ``kobaxeluri``.

    The key has between ``min_syllables`` (inclusive) and ``max_syllables``
    (exclusive, unless both are equal) syllables.
    """
    rng = rng or random.Random()
    count = min_syllables + int(rng.random() * (max_syllables - min_syllables))

    return "".join(_syllable(rng) for _ in range(count))
