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

import struct
from contextlib import contextmanager
from functools import lru_cache
from typing import Tuple as TypingTuple

from scalecodec.base import ScaleBytes

from substratedecoder.constants import MAX_CALL_DEPTH, MAX_ZERO_SIZED_ELEMENTS, MAX_VALUE_NESTING, CALL_INDEX_FORMAT_U8
from substratedecoder.exceptions import DecodeError, UnexpectedEof, InvalidBoolean, InvalidOption, UnknownVariant, \
    InvalidCompact, NonCanonicalCompact, InvalidText, InvalidEra, SequenceTooLong, CallDepthExceeded, UnknownVersion, \
    UnknownType, NestingTooDeep
from substratedecoder.scale.metadata import RuntimeVersion
from substratedecoder.scale.parser import convert_type_string
from substratedecoder.scale.registry import TypeRegistry
from substratedecoder.scale.types import TypeExpr, PrimitiveKind, Primitive, Array, Sequence, Compact, Option, \
    Tuple, Named, Struct, Enum, Era, Call
from substratedecoder.scale.values import DecodedValue, IntegerValue, FloatValue, BooleanValue, TextValue, \
    BytesValue, NullValue, ListValue, OptionValue, StructValue, VariantValue, EraValue, CallValue

__all__ = ['ValueDecoder', 'minimum_size']

FLOAT_FORMATS = {
    PrimitiveKind.F32: '<f',
    PrimitiveKind.F64: '<d',
}

# Smallest value that requires each compact mode, used for the canonical form check
COMPACT_MODE_MINIMUMS = {
    0b00: 0,
    0b01: 1 << 6,
    0b10: 1 << 14,
    0b11: 1 << 30,
}

U8 = Primitive(PrimitiveKind.U8)


@lru_cache(maxsize=1024)
def minimum_size(type_expr: TypeExpr) -> int:
    """
    Lower bound of the number of bytes a value of the resolved `type_expr` occupies

    Parameters
    ----------
    type_expr: resolved type expression (no Named nodes)

    Returns
    -------
    int
    """
    if isinstance(type_expr, Primitive):
        if type_expr.kind.byte_size is None:
            # Compact length prefix
            return 1
        return type_expr.kind.byte_size

    elif isinstance(type_expr, Array):
        return type_expr.length * minimum_size(type_expr.element)

    elif isinstance(type_expr, (Sequence, Compact, Option, Enum, Era)):
        return 1

    elif isinstance(type_expr, Call):
        return 2

    elif isinstance(type_expr, Tuple):
        return sum(minimum_size(element) for element in type_expr.elements)

    elif isinstance(type_expr, Struct):
        return sum(minimum_size(field) for _, field in type_expr.fields)

    elif isinstance(type_expr, Named):
        raise UnknownType(f'Type "{type_expr}" is not resolved')

    raise UnknownType(f'Unsupported type expression {type_expr!r}')


class ValueDecoder:
    """
    Walks resolved type expressions against a ScaleBytes cursor and produces `DecodedValue` trees.

    One instance is used for a single decode: it holds the cursor, the path of argument and type names currently
    being decoded (reported with every failure), the nesting depth of values and calls and the number of zero-sized
    elements that may still be produced.
    """

    def __init__(self, data: ScaleBytes, registry: TypeRegistry, runtime: RuntimeVersion = None, config: dict = None):
        self.data = data
        self.registry = registry
        self.runtime = runtime
        self.config = config or {}

        if runtime is not None:
            self.scope = runtime.type_scope
        else:
            self.scope = registry.base_scope

        self.path = []
        self.call_depth = 0
        self.value_depth = 0
        self.zero_sized_budget = self.config.get('max_zero_sized_elements', MAX_ZERO_SIZED_ELEMENTS)

    @property
    def remaining(self) -> int:
        return self.data.get_remaining_length()

    @contextmanager
    def path_segment(self, *names):
        self.path.extend(names)
        try:
            yield
        finally:
            del self.path[len(self.path) - len(names):]

    def read_bytes(self, length: int) -> bytes:
        if length > self.remaining:
            raise UnexpectedEof(
                f'Expected {length} bytes, only {self.remaining} remaining at offset {self.data.offset}',
                path=self.path
            )
        return bytes(self.data.get_next_bytes(length))

    def decode_compact_integer(self) -> int:
        first_byte = self.read_bytes(1)[0]
        mode = first_byte & 0b11

        if mode == 0b00:
            value = first_byte >> 2

        elif mode == 0b01:
            value = int.from_bytes(bytes([first_byte]) + self.read_bytes(1), byteorder='little') >> 2

        elif mode == 0b10:
            value = int.from_bytes(bytes([first_byte]) + self.read_bytes(3), byteorder='little') >> 2

        else:
            byte_length = (first_byte >> 2) + 4
            value_bytes = self.read_bytes(byte_length)
            value = int.from_bytes(value_bytes, byteorder='little')

            if self.config.get('check_compact_canonical') and value_bytes[-1] == 0:
                raise NonCanonicalCompact(f'Compact value {value} is encoded with superfluous bytes', path=self.path)

        if self.config.get('check_compact_canonical') and value < COMPACT_MODE_MINIMUMS[mode]:
            raise NonCanonicalCompact(f'Compact value {value} is not encoded in its shortest form', path=self.path)

        return value

    def resolve(self, type_string: str) -> TypeExpr:
        try:
            return self.registry.resolve_type_string(type_string, scope=self.scope)
        except DecodeError as e:
            registry_path = e.path
            # The registry path starts with the type string that is already the last segment
            if registry_path and self.path and registry_path[0] == self.path[-1]:
                registry_path = registry_path[1:]
            e.path = self.path + registry_path
            raise

    def decode_type_string(self, type_string: str, name: str = None) -> DecodedValue:
        """
        Resolve `type_string` in the scope of the active spec version and decode a value of that type

        Parameters
        ----------
        type_string: e.g. "Compact<Balance>"
        name: name of the argument or field, added to the path of failures

        Returns
        -------
        DecodedValue
        """
        segments = (type_string,) if name is None else (name, type_string)

        with self.path_segment(*segments):
            return self.decode(self.resolve(type_string))

    def decode(self, type_expr: TypeExpr) -> DecodedValue:
        max_value_nesting = self.config.get('max_value_nesting', MAX_VALUE_NESTING)
        if self.value_depth >= max_value_nesting:
            raise NestingTooDeep(f'Values nested deeper than {max_value_nesting} levels', path=self.path)

        self.value_depth += 1
        try:
            return self.decode_value(type_expr)
        finally:
            self.value_depth -= 1

    def decode_value(self, type_expr: TypeExpr) -> DecodedValue:

        if isinstance(type_expr, Primitive):
            return self.decode_primitive(type_expr.kind)

        elif isinstance(type_expr, Compact):
            return self.decode_compact(type_expr)

        elif isinstance(type_expr, Sequence):
            length = self.decode_compact_integer()
            return self.decode_elements(type_expr.element, length)

        elif isinstance(type_expr, Array):
            return self.decode_elements(type_expr.element, type_expr.length)

        elif isinstance(type_expr, Option):
            return self.decode_option(type_expr)

        elif isinstance(type_expr, Tuple):
            return ListValue(tuple(self.decode(element) for element in type_expr.elements))

        elif isinstance(type_expr, Struct):
            fields = []
            for name, field in type_expr.fields:
                with self.path_segment(name):
                    fields.append((name, self.decode(field)))
            return StructValue(tuple(fields))

        elif isinstance(type_expr, Enum):
            return self.decode_enum(type_expr)

        elif isinstance(type_expr, Era):
            return self.decode_era()

        elif isinstance(type_expr, Call):
            return self.decode_call()

        elif isinstance(type_expr, Named):
            raise UnknownType(f'Type "{type_expr}" is not resolved', path=self.path)

        raise UnknownType(f'Unsupported type expression {type_expr!r}', path=self.path)

    def decode_primitive(self, kind: PrimitiveKind) -> DecodedValue:

        if kind is PrimitiveKind.NULL:
            return NullValue()

        if kind is PrimitiveKind.BOOL:
            byte = self.read_bytes(1)[0]
            if byte not in (0, 1):
                raise InvalidBoolean(f'Invalid value for bool: 0x{byte:02x}', path=self.path)
            return BooleanValue(byte == 1)

        if kind.is_integer:
            return IntegerValue(
                int.from_bytes(self.read_bytes(kind.byte_size), byteorder='little', signed=kind.is_signed), kind
            )

        if kind.is_float:
            return FloatValue(struct.unpack(FLOAT_FORMATS[kind], self.read_bytes(kind.byte_size))[0], kind)

        length = self.decode_compact_integer()
        data = self.read_bytes(length)

        if kind is PrimitiveKind.BYTES:
            return BytesValue(data)

        try:
            return TextValue(data.decode('utf-8'))
        except UnicodeDecodeError as e:
            raise InvalidText(f'Invalid UTF-8 in text: {e.reason}', path=self.path)

    def decode_compact(self, type_expr: Compact) -> IntegerValue:
        inner = type_expr.inner

        if not isinstance(inner, Primitive) or not inner.kind.is_unsigned:
            raise InvalidCompact(f'Compact requires an unsigned integer, not "{inner}"', path=self.path)

        value = self.decode_compact_integer()

        if value.bit_length() > inner.kind.byte_size * 8:
            raise InvalidCompact(f'Compact value {value} out of range for {inner.kind.value}', path=self.path)

        return IntegerValue(value, inner.kind)

    def check_length(self, element: TypeExpr, length: int):
        element_size = minimum_size(element)

        if element_size == 0:
            # Shared by all sequences of one decode, so nested zero-sized arrays cannot multiply
            if length > self.zero_sized_budget:
                raise SequenceTooLong(
                    f'Sequence of {length} zero-sized elements exceeds the {self.zero_sized_budget} remaining',
                    path=self.path
                )
            self.zero_sized_budget -= length

        elif length * element_size > self.remaining:
            raise UnexpectedEof(
                f'Sequence of {length} elements requires at least {length * element_size} bytes, '
                f'only {self.remaining} remaining',
                path=self.path
            )

    def decode_elements(self, element: TypeExpr, length: int) -> DecodedValue:
        self.check_length(element, length)

        if element == U8:
            return BytesValue(self.read_bytes(length))

        items = []
        for index in range(length):
            with self.path_segment(f'[{index}]'):
                items.append(self.decode(element))

        return ListValue(tuple(items))

    def decode_option(self, type_expr: Option) -> OptionValue:
        presence = self.read_bytes(1)[0]

        if presence == 0:
            return OptionValue(None)

        if presence == 1:
            return OptionValue(self.decode(type_expr.inner))

        raise InvalidOption(f'Invalid presence byte for Option: 0x{presence:02x}', path=self.path)

    def decode_enum(self, type_expr: Enum) -> VariantValue:
        index = self.read_bytes(1)[0]
        variant = type_expr.get_variant(index)

        # Placeholders fill gaps between explicitly indexed variants
        if variant is None or variant[0].startswith('__'):
            raise UnknownVariant(f'Index {index} not present in {type_expr}', path=self.path)

        name, payload_type = variant

        if payload_type is None:
            return VariantValue(name, index)

        with self.path_segment(name):
            return VariantValue(name, index, self.decode(payload_type))

    def decode_era(self) -> EraValue:
        first_byte = self.read_bytes(1)

        if first_byte == b'\x00':
            return EraValue()

        encoded = first_byte[0] + (self.read_bytes(1)[0] << 8)
        period = 2 << (encoded % (1 << 4))
        quantize_factor = max(1, (period >> 12))
        phase = (encoded >> 4) * quantize_factor

        if period >= 4 and phase < period:
            return EraValue(period, phase)

        raise InvalidEra(f'Invalid phase and period: {phase}, {period}', path=self.path)

    def decode_call_index(self) -> TypingTuple[int, int]:
        if self.config.get('call_index_format') == CALL_INDEX_FORMAT_U8:
            module_index, call_index = self.read_bytes(2)
            return module_index, call_index

        return self.decode_compact_integer(), self.decode_compact_integer()

    def decode_call(self) -> CallValue:
        if self.runtime is None:
            raise UnknownVersion('Decoding a Call requires a spec version', path=self.path)

        max_call_depth = self.config.get('max_call_depth', MAX_CALL_DEPTH)
        if self.call_depth >= max_call_depth:
            raise CallDepthExceeded(f'Calls nested deeper than {max_call_depth} levels', path=self.path)

        start_offset = self.data.offset

        module_index, call_index = self.decode_call_index()

        try:
            module, call = self.runtime.metadata.get_call(module_index, call_index)
        except DecodeError as e:
            e.path = list(self.path)
            raise

        self.call_depth += 1
        try:
            with self.path_segment(f'{module.name}.{call.name}'):
                args = tuple(
                    (arg.name, self.decode_type_string(convert_type_string(arg.type), name=arg.name))
                    for arg in call.args
                )
        finally:
            self.call_depth -= 1

        return CallValue(
            module=module, call=call, args=args, data=bytes(self.data.data[start_offset:self.data.offset])
        )
