"""Identifier and color generation for new marks and groups."""

import itertools
import random
import re
import time

_counter = itertools.count()


def new_id(prefix: str, name: str) -> str:
    """Generate a durable identifier like ``tag-my-label-1718000000000-3``."""
    slug = re.sub(r"\s+", "-", name.strip()).lower()
    return f"{prefix}-{slug}-{time.time_ns() // 1_000_000}-{next(_counter)}"


def generate_pastel_color(rng: random.Random | None = None) -> str:
    """Return a random light HSL color string."""
    hue = (rng or random).randrange(360)
    return f"hsl({hue}, 70%, 80%)"
