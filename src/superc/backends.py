"""
SuperC Backend Labels
=====================

Execution preferences a caller can request and the backend labels the
compute engine reports.

Only PURE_CPU and ASM_SIMD correspond to real execution paths; the GPU
kinds are labels chosen by the selection heuristic, and programs labelled
with them still run on the interpreter.
"""

from enum import Enum, auto


class ComputePreference(Enum):
    """Caller's requested execution preference."""
    AUTO = auto()       # choose by workload size
    GPU = auto()        # best available GPU, else the HIP CPU fallback
    CPU = auto()
    ASM = auto()
    LOW_POWER = auto()


class Backend(Enum):
    """Backend label attached to a run, with its display description."""
    CUDA_GPU = "CUDA GPU"
    HIP_GPU = "HIP GPU (AMD)"
    HIP_CPU = "HIP-CPU"
    ASM_SIMD = "ASM SIMD (AVX)"
    PURE_CPU = "Pure CPU"

    @property
    def description(self) -> str:
        return self.value

    @property
    def is_gpu(self) -> bool:
        return self in (Backend.CUDA_GPU, Backend.HIP_GPU)

    def __str__(self) -> str:
        return self.value


# Backends reported when no GPU is configured
DEFAULT_BACKENDS = (Backend.PURE_CPU, Backend.ASM_SIMD, Backend.HIP_CPU)
