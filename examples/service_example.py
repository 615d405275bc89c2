#!/usr/bin/env python3
"""
Counting distinct visitors with cardinal.

Adds visitor ids for two days to separate keys, then compares the
estimated distinct counts with the exact ones for each day and for the
union of both days.
"""

import random
import tempfile
from cardinal import CardinalityService, CardinalConfig, DirectoryBackend

def generate_visits(size, population, rng):
    """Visitor ids drawn with repetition from a population."""
    return [f"user:{rng.randrange(population)}" for _ in range(size)]

def main():
    rng = random.Random(7)
    monday = generate_visits(50000, 30000, rng)
    tuesday = generate_visits(50000, 30000, rng)

    with tempfile.TemporaryDirectory() as root:
        service = CardinalityService(DirectoryBackend(root), CardinalConfig(precision=14, packing="packed"))
        service.add("visits:monday", *monday)
        service.add("visits:tuesday", *tuesday)
        service.union("visits:week", "visits:monday", "visits:tuesday")

        rows = [
            ("monday", len(set(monday)), service.size("visits:monday")),
            ("tuesday", len(set(tuesday)), service.size("visits:tuesday")),
            ("both days", len(set(monday) | set(tuesday)), service.size("visits:week")),
        ]

    print(f"{'Key':<12}{'Exact':>10}{'Estimate':>10}{'Error':>9}")
    for name, exact, estimate in rows:
        print(f"{name:<12}{exact:>10}{estimate:>10}{abs(estimate - exact) / exact:>9.2%}")

if __name__ == "__main__":
    main()
