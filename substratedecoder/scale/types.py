# Python Substrate Decoder Library
#
# Copyright 2018-2024 Stichting Polkascan (Polkascan Foundation).
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Type expressions: the structured form of type-name strings such as `Option<Vec<Compact<Balance>>>`.

Every node is an immutable, hashable dataclass that owns its children, so parsed and resolved trees can be shared
freely between threads and used as cache keys.
"""

import enum
import typing
from dataclasses import dataclass
from functools import lru_cache

from substratedecoder.exceptions import UnknownPrimitive


class PrimitiveKind(enum.Enum):
    U8 = 'u8'
    U16 = 'u16'
    U32 = 'u32'
    U64 = 'u64'
    U128 = 'u128'
    U256 = 'u256'
    I8 = 'i8'
    I16 = 'i16'
    I32 = 'i32'
    I64 = 'i64'
    I128 = 'i128'
    I256 = 'i256'
    F32 = 'f32'
    F64 = 'f64'
    BOOL = 'bool'
    STR = 'str'
    BYTES = 'Bytes'
    NULL = 'Null'

    @property
    def byte_size(self) -> typing.Optional[int]:
        """
        Number of bytes the kind occupies on the wire, or None for length-prefixed kinds (str and Bytes)
        """
        return PRIMITIVE_BYTE_SIZES.get(self)

    @property
    def is_unsigned(self) -> bool:
        return self in UNSIGNED_KINDS

    @property
    def is_signed(self) -> bool:
        return self in SIGNED_KINDS

    @property
    def is_integer(self) -> bool:
        return self.is_unsigned or self.is_signed

    @property
    def is_float(self) -> bool:
        return self in (PrimitiveKind.F32, PrimitiveKind.F64)


PRIMITIVE_BYTE_SIZES = {
    PrimitiveKind.U8: 1,
    PrimitiveKind.U16: 2,
    PrimitiveKind.U32: 4,
    PrimitiveKind.U64: 8,
    PrimitiveKind.U128: 16,
    PrimitiveKind.U256: 32,
    PrimitiveKind.I8: 1,
    PrimitiveKind.I16: 2,
    PrimitiveKind.I32: 4,
    PrimitiveKind.I64: 8,
    PrimitiveKind.I128: 16,
    PrimitiveKind.I256: 32,
    PrimitiveKind.F32: 4,
    PrimitiveKind.F64: 8,
    PrimitiveKind.BOOL: 1,
    PrimitiveKind.NULL: 0,
}

UNSIGNED_KINDS = frozenset([
    PrimitiveKind.U8, PrimitiveKind.U16, PrimitiveKind.U32, PrimitiveKind.U64, PrimitiveKind.U128, PrimitiveKind.U256
])

SIGNED_KINDS = frozenset([
    PrimitiveKind.I8, PrimitiveKind.I16, PrimitiveKind.I32, PrimitiveKind.I64, PrimitiveKind.I128, PrimitiveKind.I256
])

# Kind token and bit width as used in array declarations like `[u8; 32]`
NUMERIC_KINDS = {
    ('u', 8): PrimitiveKind.U8,
    ('u', 16): PrimitiveKind.U16,
    ('u', 32): PrimitiveKind.U32,
    ('u', 64): PrimitiveKind.U64,
    ('u', 128): PrimitiveKind.U128,
    ('u', 256): PrimitiveKind.U256,
    ('i', 8): PrimitiveKind.I8,
    ('i', 16): PrimitiveKind.I16,
    ('i', 32): PrimitiveKind.I32,
    ('i', 64): PrimitiveKind.I64,
    ('i', 128): PrimitiveKind.I128,
    ('i', 256): PrimitiveKind.I256,
    ('f', 32): PrimitiveKind.F32,
    ('f', 64): PrimitiveKind.F64,
}


def get_numeric_kind(kind_token: str, bit_width: int) -> PrimitiveKind:
    try:
        return NUMERIC_KINDS[(kind_token, bit_width)]
    except KeyError:
        raise UnknownPrimitive(f'Type does not exist: "{kind_token}{bit_width}"')


class TypeExpr:
    """
    Base class of the closed set of type expression nodes
    """

    def type_string(self) -> str:
        raise NotImplementedError()

    def __str__(self):
        return self.type_string()


@dataclass(frozen=True)
class Primitive(TypeExpr):
    kind: PrimitiveKind

    def type_string(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class Array(TypeExpr):
    element: TypeExpr
    length: int

    def type_string(self) -> str:
        return f'[{self.element.type_string()}; {self.length}]'


@dataclass(frozen=True)
class Sequence(TypeExpr):
    element: TypeExpr

    def type_string(self) -> str:
        return f'Vec<{self.element.type_string()}>'


@dataclass(frozen=True)
class Compact(TypeExpr):
    inner: TypeExpr

    def type_string(self) -> str:
        return f'Compact<{self.inner.type_string()}>'


@dataclass(frozen=True)
class Option(TypeExpr):
    inner: TypeExpr

    def type_string(self) -> str:
        return f'Option<{self.inner.type_string()}>'


@dataclass(frozen=True)
class Tuple(TypeExpr):
    elements: typing.Tuple[TypeExpr, ...] = ()

    def type_string(self) -> str:
        return '({})'.format(', '.join(element.type_string() for element in self.elements))


@dataclass(frozen=True)
class Named(TypeExpr):
    name: str
    type_args: typing.Tuple[TypeExpr, ...] = ()

    def type_string(self) -> str:
        if self.type_args:
            return '{}<{}>'.format(self.name, ', '.join(arg.type_string() for arg in self.type_args))
        return self.name


@dataclass(frozen=True)
class Struct(TypeExpr):
    fields: typing.Tuple[typing.Tuple[str, TypeExpr], ...] = ()

    def type_string(self) -> str:
        return '{{{}}}'.format(', '.join(f'{name}: {type_expr.type_string()}' for name, type_expr in self.fields))


@dataclass(frozen=True)
class Enum(TypeExpr):
    # Variant index is the position in this tuple; a payload of None means the variant carries no data
    variants: typing.Tuple[typing.Tuple[str, typing.Optional[TypeExpr]], ...] = ()

    def type_string(self) -> str:
        return 'enum {{{}}}'.format(', '.join(
            name if payload is None else f'{name}({payload.type_string()})' for name, payload in self.variants
        ))

    def get_variant(self, index: int) -> typing.Optional[typing.Tuple[str, typing.Optional[TypeExpr]]]:
        if 0 <= index < len(self.variants):
            return self.variants[index]


@dataclass(frozen=True)
class Era(TypeExpr):

    def type_string(self) -> str:
        return 'Era'


@dataclass(frozen=True)
class Call(TypeExpr):

    def type_string(self) -> str:
        return 'Call'


# Names that resolve without consulting any registry tier
BUILTIN_TYPES = {
    'u8': Primitive(PrimitiveKind.U8),
    'u16': Primitive(PrimitiveKind.U16),
    'u32': Primitive(PrimitiveKind.U32),
    'u64': Primitive(PrimitiveKind.U64),
    'u128': Primitive(PrimitiveKind.U128),
    'u256': Primitive(PrimitiveKind.U256),
    'i8': Primitive(PrimitiveKind.I8),
    'i16': Primitive(PrimitiveKind.I16),
    'i32': Primitive(PrimitiveKind.I32),
    'i64': Primitive(PrimitiveKind.I64),
    'i128': Primitive(PrimitiveKind.I128),
    'i256': Primitive(PrimitiveKind.I256),
    'f32': Primitive(PrimitiveKind.F32),
    'f64': Primitive(PrimitiveKind.F64),
    'bool': Primitive(PrimitiveKind.BOOL),
    'str': Primitive(PrimitiveKind.STR),
    'String': Primitive(PrimitiveKind.STR),
    'Text': Primitive(PrimitiveKind.STR),
    'Bytes': Primitive(PrimitiveKind.BYTES),
    'Null': Primitive(PrimitiveKind.NULL),
    'Era': Era(),
    'Call': Call(),
}


@lru_cache(maxsize=1024)
def get_nesting_depth(type_expr: TypeExpr) -> int:
    """
    Number of levels below `type_expr`, 0 for leaves like `Primitive` and `Era`
    """
    if isinstance(type_expr, (Array, Sequence)):
        children = (type_expr.element,)
    elif isinstance(type_expr, (Compact, Option)):
        children = (type_expr.inner,)
    elif isinstance(type_expr, Tuple):
        children = type_expr.elements
    elif isinstance(type_expr, Named):
        children = type_expr.type_args
    elif isinstance(type_expr, Struct):
        children = tuple(field for _, field in type_expr.fields)
    elif isinstance(type_expr, Enum):
        children = tuple(payload for _, payload in type_expr.variants if payload is not None)
    else:
        return 0

    return max((1 + get_nesting_depth(child) for child in children), default=0)
