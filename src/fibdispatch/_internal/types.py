"""Shared type aliases for fibdispatch."""

from __future__ import annotations

from typing import Literal

# Which algorithm a worker runs: the n-th term, or the first n terms.
Variant = Literal["term", "sequence"]

VARIANTS: tuple[str, ...] = ("term", "sequence")

# Value produced by a compute call.
ComputeValue = int | list[int]

# multiprocessing start methods accepted for workers.
StartMethod = Literal["spawn", "fork", "forkserver"]

START_METHODS: tuple[str, ...] = ("spawn", "fork", "forkserver")
