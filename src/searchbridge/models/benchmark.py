"""Benchmark result model."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BenchmarkResult(BaseModel):
    """Timing of one adapter's benchmark run, or the error that stopped it.

    Serialize with ``model_dump(exclude_none=True)`` to get either
    ``{total_time, average_time, queries_per_second}`` or ``{error}``.
    """

    total_time: float | None = Field(default=None, description="Wall time of all iterations, in seconds")
    average_time: float | None = Field(default=None, description="Mean time per query, in seconds")
    queries_per_second: float | None = Field(default=None, description="Throughput")
    error: str | None = Field(default=None, description="Failure message when the adapter could not be benchmarked")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def from_timing(cls, total_time: float, iterations: int) -> BenchmarkResult:
        return cls(
            total_time=total_time,
            average_time=total_time / iterations,
            queries_per_second=iterations / total_time if total_time > 0 else float("inf"),
        )

    @classmethod
    def failed(cls, message: str) -> BenchmarkResult:
        return cls(error=message)
