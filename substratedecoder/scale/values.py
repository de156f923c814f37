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

"""Decoded values, mirroring the shape of the resolved type expression they were decoded with.

Every value exposes `value`: a plain python serialization (ints, strings, `0x` prefixed hex for bytes, lists and
dicts) in the format of scalecodec's `value_serialized`.
"""

import typing
from dataclasses import dataclass

from substratedecoder.scale.metadata import ModuleMetadata, CallMetadata
from substratedecoder.scale.types import PrimitiveKind
from substratedecoder.utils.hasher import blake2_256

__all__ = [
    'DecodedValue', 'IntegerValue', 'FloatValue', 'BooleanValue', 'TextValue', 'BytesValue', 'NullValue', 'ListValue',
    'OptionValue', 'StructValue', 'VariantValue', 'EraValue', 'CallValue'
]


class DecodedValue:
    pass


@dataclass(frozen=True)
class IntegerValue(DecodedValue):
    value: int
    kind: PrimitiveKind


@dataclass(frozen=True)
class FloatValue(DecodedValue):
    value: float
    kind: PrimitiveKind


@dataclass(frozen=True)
class BooleanValue(DecodedValue):
    value: bool


@dataclass(frozen=True)
class TextValue(DecodedValue):
    value: str


@dataclass(frozen=True)
class BytesValue(DecodedValue):
    data: bytes

    @property
    def value(self) -> str:
        return f'0x{self.data.hex()}'


@dataclass(frozen=True)
class NullValue(DecodedValue):

    @property
    def value(self):
        return None


@dataclass(frozen=True)
class ListValue(DecodedValue):
    items: typing.Tuple[DecodedValue, ...] = ()

    @property
    def value(self) -> list:
        return [item.value for item in self.items]

    def __getitem__(self, index):
        return self.items[index]

    def __len__(self):
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


@dataclass(frozen=True)
class OptionValue(DecodedValue):
    inner: typing.Optional[DecodedValue] = None

    @property
    def is_some(self) -> bool:
        return self.inner is not None

    @property
    def value(self):
        if self.inner is None:
            return None
        return self.inner.value


@dataclass(frozen=True)
class StructValue(DecodedValue):
    fields: typing.Tuple[typing.Tuple[str, DecodedValue], ...] = ()

    @property
    def value(self) -> dict:
        return {name: field.value for name, field in self.fields}

    def __getitem__(self, name: str) -> DecodedValue:
        for field_name, field in self.fields:
            if field_name == name:
                return field
        raise KeyError(name)

    def __contains__(self, name):
        return any(field_name == name for field_name, _ in self.fields)


@dataclass(frozen=True)
class VariantValue(DecodedValue):
    name: str
    index: int
    payload: typing.Optional[DecodedValue] = None

    @property
    def value(self):
        if self.payload is None:
            return self.name
        return {self.name: self.payload.value}


@dataclass(frozen=True)
class EraValue(DecodedValue):
    period: typing.Optional[int] = None
    phase: typing.Optional[int] = None

    @property
    def value(self):
        if self.is_immortal():
            return 'Immortal'
        return {'Mortal': (self.period, self.phase)}

    def is_immortal(self) -> bool:
        """Returns true if the era is immortal, false if mortal."""
        return self.period is None or self.phase is None

    def birth(self, current: int) -> int:
        """Gets the block number of the start of the era given, with `current`
        as the reference block number for the era, normally included as part
        of the transaction.
        """
        if self.is_immortal():
            return 0
        return (max(current, self.phase) - self.phase) // self.period * self.period + self.phase

    def death(self, current: int) -> int:
        """Gets the block number of the first block at which the era has ended.

        If the era is immortal, 2**64 - 1 (the maximum unsigned 64-bit integer) is returned.
        """
        if self.is_immortal():
            return 2**64 - 1
        return self.birth(current) + self.period


@dataclass(frozen=True)
class CallValue(DecodedValue):
    module: ModuleMetadata
    call: CallMetadata
    args: typing.Tuple[typing.Tuple[str, DecodedValue], ...] = ()
    data: bytes = b''

    @property
    def module_name(self) -> str:
        return self.module.name

    @property
    def call_name(self) -> str:
        return self.call.name

    @property
    def call_index(self) -> str:
        return '0x{:02x}{:02x}'.format(self.module.index & 0xff, self.call.index & 0xff)

    @property
    def call_hash(self) -> str:
        return f'0x{blake2_256(self.data).hex()}'

    def get_arg(self, name: str) -> DecodedValue:
        for arg_name, arg_value in self.args:
            if arg_name == name:
                return arg_value
        raise KeyError(name)

    @property
    def value(self) -> dict:
        return {
            'call_index': self.call_index,
            'call_module': self.module.name,
            'call_function': self.call.name,
            'call_args': [
                {'name': arg.name, 'type': arg.type, 'value': arg_value.value}
                for arg, (_, arg_value) in zip(self.call.args, self.args)
            ]
        }
