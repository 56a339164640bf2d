"""
SuperC Type System
==================

Declared types of SuperC data and function signatures.

Supported Types
---------------
| Type   | Meaning                 | Rust | C         |
|--------|-------------------------|------|-----------|
| i32    | 32-bit signed integer   | i32  | int32_t   |
| i64    | 64-bit signed integer   | i64  | int64_t   |
| f32    | 32-bit float            | f32  | float     |
| f64    | 64-bit float            | f64  | double    |
| bool   | boolean                 | bool | bool      |
| T[N]   | fixed array of N scalar | [T; N] | T x[N]  |
| void   | no value (returns only) | ()   | void      |

Runtime Representation
----------------------
The compute engine stores every value as a 32-bit float whatever its
declared type. Emitted Rust and C keep the declared types and convert at
each read and write; results match the engine for f32 data.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Base Type Enumeration
# =============================================================================

class BaseType(Enum):
    """Scalar element types."""
    I32 = auto()
    I64 = auto()
    F32 = auto()
    F64 = auto()
    BOOL = auto()
    VOID = auto()

    def __str__(self) -> str:
        return self.name.lower()


# =============================================================================
# Data Type
# =============================================================================

@dataclass(frozen=True)
class DataType:
    """
    A declared SuperC type.

    Attributes:
        base: Scalar type (element type for arrays)
        array_size: Number of elements, None for scalars
    """
    base: BaseType
    array_size: Optional[int] = None

    @property
    def is_array(self) -> bool:
        return self.array_size is not None

    @property
    def is_void(self) -> bool:
        return self.base == BaseType.VOID and not self.is_array

    @property
    def is_integer(self) -> bool:
        return self.base in (BaseType.I32, BaseType.I64)

    @property
    def is_bool(self) -> bool:
        return self.base == BaseType.BOOL

    def element_type(self) -> "DataType":
        """Return the scalar type of an array's elements (self for scalars)."""
        return DataType(self.base)

    def array_of(self, size: int) -> "DataType":
        return DataType(self.base, size)

    def __str__(self) -> str:
        if self.is_array:
            return f"{self.base}[{self.array_size}]"
        return str(self.base)


# Common type constants
I32 = DataType(BaseType.I32)
I64 = DataType(BaseType.I64)
F32 = DataType(BaseType.F32)
F64 = DataType(BaseType.F64)
BOOL = DataType(BaseType.BOOL)
VOID = DataType(BaseType.VOID)
