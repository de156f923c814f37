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

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from scalecodec.base import ScaleBytes

from substratedecoder.constants import BIT_SIGNED, UNMASK_VERSION, ADDRESS_TYPE, SIGNATURE_TYPE, \
    DEFAULT_SIGNED_EXTENSIONS
from substratedecoder.exceptions import TrailingBytes, UnexpectedEof
from substratedecoder.scale.account import get_account_id, get_ss58_address
from substratedecoder.scale.codec import ValueDecoder, minimum_size
from substratedecoder.scale.metadata import RuntimeVersion
from substratedecoder.scale.registry import TypeRegistry
from substratedecoder.scale.values import DecodedValue, CallValue, VariantValue
from substratedecoder.utils.hasher import blake2_256

__all__ = ['ExtrinsicSignature', 'DecodedExtrinsic', 'ExtrinsicDecoder']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtrinsicSignature:
    address: DecodedValue
    signature: DecodedValue
    extra: Tuple[Tuple[str, DecodedValue], ...] = ()
    ss58_format: Optional[int] = None

    @property
    def account_id(self) -> Optional[bytes]:
        return get_account_id(self.address)

    @property
    def ss58_address(self) -> Optional[str]:
        if self.ss58_format is not None:
            return get_ss58_address(self.address, ss58_format=self.ss58_format)

    @property
    def signature_scheme(self) -> Optional[str]:
        """
        Name of the signature variant, e.g. "Sr25519", or None when the signature type is not an enum
        """
        if isinstance(self.signature, VariantValue):
            return self.signature.name

    def get_extra(self, name: str) -> DecodedValue:
        for extra_name, extra_value in self.extra:
            if extra_name == name:
                return extra_value
        raise KeyError(name)

    @property
    def value(self) -> dict:
        value = {
            'address': self.ss58_address or self.address.value,
            'signature': self.signature.value
        }
        value.update({name: extra_value.value for name, extra_value in self.extra})
        return value


@dataclass(frozen=True)
class DecodedExtrinsic:
    spec_version: int
    version: int
    signature: Optional[ExtrinsicSignature]
    call: CallValue
    data: bytes = b''

    @property
    def signed(self) -> bool:
        return self.signature is not None

    @property
    def module_name(self) -> str:
        return self.call.module_name

    @property
    def call_name(self) -> str:
        return self.call.call_name

    @property
    def module_index(self) -> int:
        return self.call.module.index

    @property
    def call_index(self) -> int:
        return self.call.call.index

    @property
    def args(self) -> Tuple[Tuple[str, DecodedValue], ...]:
        return self.call.args

    @property
    def call_hash(self) -> str:
        return self.call.call_hash

    @property
    def extrinsic_hash(self) -> str:
        return f'0x{blake2_256(self.data).hex()}'

    @property
    def value(self) -> dict:
        value = {
            'extrinsic_hash': self.extrinsic_hash,
            'extrinsic_length': len(self.data),
            'version': self.version,
            'signed': self.signed,
        }

        if self.signature is not None:
            value.update(self.signature.value)

        value['call'] = self.call.value

        return value


class ExtrinsicDecoder:
    """
    Decodes the extrinsic envelope: version byte, optional signature block with signed extensions, and the call
    """

    def __init__(self, registry: TypeRegistry, runtime: RuntimeVersion, config: dict = None):
        self.registry = registry
        self.runtime = runtime
        self.config = config or {}

    def get_signed_extensions(self) -> list:
        """
        Name and type string of each signed extension, in the order they are encoded

        Returns
        -------
        list of (name, type_string) tuples
        """
        signed_extensions = self.runtime.metadata.get_signed_extensions()

        if not signed_extensions:
            return list(DEFAULT_SIGNED_EXTENSIONS)

        return [(extension.name, extension.type_string) for extension in signed_extensions]

    def unwrap_length_prefix(self, data: ScaleBytes) -> ScaleBytes:
        decoder = ValueDecoder(data, self.registry, config=self.config)

        with decoder.path_segment('length'):
            length = decoder.decode_compact_integer()

            if length < decoder.remaining:
                raise TrailingBytes(
                    f'Length prefix declares {length} bytes, {decoder.remaining} bytes present', path=decoder.path
                )

            if length > decoder.remaining:
                raise UnexpectedEof(
                    f'Length prefix declares {length} bytes, only {decoder.remaining} bytes present',
                    path=decoder.path
                )

            return ScaleBytes(decoder.read_bytes(length))

    def decode_signature(self, decoder: ValueDecoder) -> ExtrinsicSignature:
        address = decoder.decode_type_string(ADDRESS_TYPE, name='address')
        signature = decoder.decode_type_string(SIGNATURE_TYPE, name='signature')

        extra = []
        for name, type_string in self.get_signed_extensions():
            with decoder.path_segment(name, type_string):
                type_expr = decoder.resolve(type_string)

                # Extensions without payload (e.g. CheckSpecVersion) only contribute to the signed data
                if minimum_size(type_expr) == 0:
                    continue

                extra.append((name, decoder.decode(type_expr)))

        return ExtrinsicSignature(
            address=address, signature=signature, extra=tuple(extra), ss58_format=self.config.get('ss58_format')
        )

    def decode(self, data: bytes) -> DecodedExtrinsic:
        scale_bytes = ScaleBytes(data)

        if self.config.get('length_prefixed'):
            scale_bytes = self.unwrap_length_prefix(scale_bytes)

        decoder = ValueDecoder(scale_bytes, self.registry, runtime=self.runtime, config=self.config)

        # Get extrinsic version information encoding in the first byte
        with decoder.path_segment('version'):
            version_info = decoder.read_bytes(1)[0]

        signed = (version_info & BIT_SIGNED) == BIT_SIGNED
        version = version_info & UNMASK_VERSION

        if version != self.runtime.metadata.extrinsic_version:
            logger.warning(
                f'Extrinsic version {version} differs from version {self.runtime.metadata.extrinsic_version} '
                f'declared by metadata of spec version {self.runtime.spec_version}'
            )

        signature = None
        if signed:
            signature = self.decode_signature(decoder)

        call = decoder.decode_call()

        if decoder.remaining > 0:
            if not self.config.get('allow_trailing_bytes'):
                raise TrailingBytes(
                    f'{decoder.remaining} bytes remaining after decoding extrinsic',
                    path=[f'{call.module_name}.{call.call_name}']
                )
            logger.warning(f'Ignoring {decoder.remaining} trailing bytes after "{call.module_name}.{call.call_name}"')

        return DecodedExtrinsic(
            spec_version=self.runtime.spec_version,
            version=version,
            signature=signature,
            call=call,
            data=bytes(data)
        )
