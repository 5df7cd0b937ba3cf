"""
Simulated decomposition: cuts the label text into 2-4 pieces at random split points,
with random ratios normalized to 1. Stand-in for the LLM when no model is configured.
Seed it for reproducible trees.
"""

import asyncio
import random
from typing import List, Optional

from flow.model import DecomposePart, TreeNode, normalize_ratios

MAX_PARTS = 4
MAX_SPLIT_ATTEMPTS = 100


class SimulatedDecomposer:
    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None, delay_ms: int = 0):
        self.rng = rng or random.Random(seed)
        self.delay_ms = delay_ms

    def split(self, text: str) -> List[DecomposePart]:
        """Random split of text. Texts of length <= 1 are leaves."""
        if len(text) <= 1:
            return []

        # Every part keeps at least one character
        max_parts = min(MAX_PARTS, len(text) // 2 + 1)

        if max_parts <= 2:
            mid = len(text) // 2
            r1, r2 = normalize_ratios([self.rng.random(), self.rng.random()])
            return [DecomposePart(text=text[:mid], ratio=r1), DecomposePart(text=text[mid:], ratio=r2)]

        parts_count = self.rng.randint(2, max_parts)
        split_points: set[int] = set()
        attempts = 0
        while len(split_points) < parts_count - 1 and attempts < MAX_SPLIT_ATTEMPTS:
            split_points.add(self.rng.randint(1, len(text) - 1))
            attempts += 1

        bounds = [0] + sorted(split_points) + [len(text)]
        ratios = normalize_ratios([self.rng.random() for _ in range(len(bounds) - 1)])
        return [
            DecomposePart(text=text[start:end], ratio=ratio)
            for start, end, ratio in zip(bounds, bounds[1:], ratios)
        ]

    async def decompose(
        self,
        label: str,
        context_tree: Optional[TreeNode] = None,
        context_node_id: Optional[str] = None,
    ) -> List[DecomposePart]:
        if self.delay_ms:
            await asyncio.sleep(self.delay_ms / 1000.0)
        return self.split(label or "")
