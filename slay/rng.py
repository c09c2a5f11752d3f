"""
Seeded random streams.

Every stochastic decision in a run draws from a per-node ``random.Random``
whose seed is derived from the run seed and the node id. Derivation hashes
the pair, so the seed a node gets does not depend on the order in which the
topology was built.
"""

import hashlib
import random


SEED_BITS = 64


def derive_seed(run_seed: int, node_id: str) -> int:
    """
    Derive a node seed from the run seed.

    Args:
        run_seed: Top-level seed of the run
        node_id: Node the stream belongs to

    Returns:
        A 64-bit unsigned integer seed
    """
    digest = hashlib.sha256(f"{run_seed}:{node_id}".encode()).digest()
    return int.from_bytes(digest[:SEED_BITS // 8], "big")


def make_rng(seed: int | None) -> random.Random:
    """Create a stream; ``None`` gives seed 0 rather than OS entropy."""
    return random.Random(0 if seed is None else seed)
