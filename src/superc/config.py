"""
SuperC Engine Configuration
===========================

Thresholds and backend availability used by the compute engine.
Configuration can come from:
- Default values (defined here)
- Environment variables (EngineConfig.from_env)

Backend Selection Thresholds
----------------------------
Under the AUTO preference the workload size (largest top-level array)
picks the backend label:

| Workload size        | Backend                               |
|----------------------|---------------------------------------|
| > gpu_threshold      | CUDA or HIP GPU if present, else ASM  |
| > simd_threshold     | ASM SIMD                              |
| otherwise            | Pure CPU                              |
"""

from dataclasses import dataclass, field
from typing import List
import os

from superc.backends import DEFAULT_BACKENDS, Backend


GPU_NAMES = {
    "cuda": Backend.CUDA_GPU,
    "hip": Backend.HIP_GPU,
}


@dataclass
class EngineConfig:
    """
    Configuration for the compute engine.

    Attributes:
        gpu_threshold: Workload size above which a GPU is preferred
        simd_threshold: Workload size above which ASM SIMD is preferred
        available_backends: Backends considered present
        print_precision: Decimal places used by print()
    """

    gpu_threshold: int = 100_000
    simd_threshold: int = 1_000
    available_backends: List[Backend] = field(
        default_factory=lambda: list(DEFAULT_BACKENDS)
    )
    print_precision: int = 6

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Create EngineConfig from environment variables.

        Environment variables (all optional):
            SUPERC_GPU_THRESHOLD: GPU workload threshold (integer)
            SUPERC_SIMD_THRESHOLD: SIMD workload threshold (integer)
            SUPERC_GPU: GPUs to report as present ("cuda", "hip" or
                "cuda,hip")

        Returns:
            EngineConfig with values from environment variables
        """
        config = cls()

        if threshold := os.environ.get("SUPERC_GPU_THRESHOLD"):
            try:
                config.gpu_threshold = int(threshold)
            except ValueError:
                pass  # Ignore invalid values

        if threshold := os.environ.get("SUPERC_SIMD_THRESHOLD"):
            try:
                config.simd_threshold = int(threshold)
            except ValueError:
                pass

        if gpus := os.environ.get("SUPERC_GPU"):
            for name in gpus.split(","):
                backend = GPU_NAMES.get(name.strip().lower())
                if backend is not None and backend not in config.available_backends:
                    config.available_backends.append(backend)

        return config

    def has_backend(self, backend: Backend) -> bool:
        return backend in self.available_backends
