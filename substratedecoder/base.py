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
import threading
from typing import Optional, Union

from scalecodec.base import ScaleBytes

from .constants import *
from .exceptions import ConfigurationError, TrailingBytes, InvalidHexString
from .scale.codec import ValueDecoder
from .scale.extrinsic import ExtrinsicDecoder, DecodedExtrinsic
from .scale.metadata import Metadata, MetadataStore, RuntimeVersion
from .scale.parser import TypeStringParser
from .scale.registry import TypeRegistry
from .scale.types import TypeExpr
from .scale.values import DecodedValue

__all__ = ['Decoder', 'logger']

logger = logging.getLogger(__name__)


class Decoder:

    def __init__(self, chain: str, type_registry: dict = None, type_registry_preset: str = DEFAULT_TYPE_REGISTRY_PRESET,
                 ss58_format: int = None, length_prefixed: bool = False,
                 call_index_format: str = CALL_INDEX_FORMAT_COMPACT, allow_trailing_bytes: bool = False,
                 check_compact_canonical: bool = False):
        """
        Decodes extrinsics of one chain, for every spec version registered with `register_version()`.

        Parameters
        ----------
        chain: identifier of the chain, e.g. "kusama"
        type_registry: A dict containing the chain type registry in format: {'types': {'customType': 'u32'},..}
        type_registry_preset: The name of the predefined type registry used as default catalog, None to disable
        ss58_format: The address type which account IDs will be SS58-encoded to Substrate addresses, e.g. 2 for Kusama
        length_prefixed: When True the extrinsic data starts with a compact length prefix (as stored in blocks)
        call_index_format: 'compact' for compact encoded module and call indices, 'u8' for one byte each
        allow_trailing_bytes: When True bytes remaining after the call are ignored instead of raising TrailingBytes
        check_compact_canonical: When True compact integers not encoded in their shortest form are rejected
        """

        if type(chain) is not str or not chain:
            raise ConfigurationError("'chain' must be a non-empty string")

        if ss58_format is not None and (type(ss58_format) is not int or not 0 <= ss58_format < 16384):
            raise ConfigurationError("'ss58_format' must be an integer in range 0-16383")

        if call_index_format not in CALL_INDEX_FORMATS:
            raise ConfigurationError(f"'call_index_format' must be one of {', '.join(CALL_INDEX_FORMATS)}")

        if type_registry is not None and type(type_registry) is not dict:
            raise ConfigurationError("'type_registry' must be a dict in format {'types': {...}}")

        self.chain = chain

        self.config = {
            'ss58_format': ss58_format,
            'length_prefixed': length_prefixed,
            'call_index_format': call_index_format,
            'allow_trailing_bytes': allow_trailing_bytes,
            'check_compact_canonical': check_compact_canonical,
            'max_call_depth': MAX_CALL_DEPTH
        }

        self.parser = TypeStringParser()
        self.type_registry = TypeRegistry(
            chain, type_registry=type_registry, type_registry_preset=type_registry_preset, parser=self.parser
        )
        self.metadata_store = MetadataStore()

        self.__registration_lock = threading.Lock()

    @staticmethod
    def debug_message(message: str):
        """
        Submits a message to the debug logger

        Parameters
        ----------
        message: str Debug message

        Returns
        -------

        """
        logger.debug(message)

    def register_version(self, spec_version: int, metadata: Union[Metadata, dict]) -> RuntimeVersion:
        """
        Register the metadata of a spec version, replacing any previous registration of that version. Decodes already
        in progress keep using the registration they started with.

        Parameters
        ----------
        spec_version: spec version of the runtime, e.g. 1020
        metadata: Metadata instance or plain dict accepted by `Metadata.from_dict()`

        Returns
        -------
        RuntimeVersion
        """
        if type(spec_version) is not int or spec_version < 0:
            raise ConfigurationError("'spec_version' must be a non-negative integer")

        if type(metadata) is dict:
            metadata = Metadata.from_dict(metadata)

        if not isinstance(metadata, Metadata):
            raise ConfigurationError("'metadata' must be a Metadata instance or dict")

        with self.__registration_lock:
            type_scope = self.type_registry.register_version_types(spec_version, metadata.type_aliases)
            runtime_version = RuntimeVersion(spec_version, metadata, type_scope)
            self.metadata_store.register(runtime_version)

        self.debug_message(
            f'Registered spec version {spec_version} of "{self.chain}" with {len(metadata.modules)} modules'
        )

        return runtime_version

    def get_runtime_version(self, spec_version: int) -> RuntimeVersion:
        return self.metadata_store.get(spec_version)

    @property
    def spec_versions(self) -> list:
        return self.metadata_store.spec_versions

    @staticmethod
    def convert_data(data: Union[bytes, bytearray, str, ScaleBytes]) -> bytes:
        """
        Raw bytes of given input. Strings that are not "0x"-prefixed hex raise `InvalidHexString`. Values of any
        other type are a programming error and raise TypeError
        """
        if isinstance(data, ScaleBytes):
            return bytes(data.data[data.offset:])

        if type(data) in (bytes, bytearray):
            return bytes(data)

        if type(data) is str:
            if data[0:2] != '0x':
                raise InvalidHexString(f'Hex string must start with "0x": "{data[:64]}"')
            try:
                return bytes.fromhex(data[2:])
            except ValueError:
                raise InvalidHexString(f'Invalid hex string "{data[:64]}"')

        raise TypeError('Data must be bytes, bytearray, "0x"-prefixed hex string or ScaleBytes')

    def decode_extrinsic(self, spec_version: int, data: Union[bytes, bytearray, str, ScaleBytes]) -> DecodedExtrinsic:
        """
        Decode an extrinsic with the metadata and types of given spec version

        Parameters
        ----------
        spec_version: registered spec version the extrinsic was created for
        data: SCALE encoded extrinsic, e.g. "0x280400000b80eeb3306f01"

        Returns
        -------
        DecodedExtrinsic
        """
        # All lookups of this decode use this snapshot, regardless of concurrent registrations
        runtime_version = self.get_runtime_version(spec_version)

        extrinsic_decoder = ExtrinsicDecoder(self.type_registry, runtime_version, config=self.config)
        return extrinsic_decoder.decode(self.convert_data(data))

    def decode_type(self, type_string: str, data: Union[bytes, bytearray, str, ScaleBytes],
                    spec_version: Optional[int] = None) -> DecodedValue:
        """
        Helper function to decode arbitrary SCALE-bytes (e.g. 0x02000000) according to given type_string
        (e.g. BlockNumber). The type overrides and metadata of given spec version are applied when set, which is
        required for types containing a Call.

        Parameters
        ----------
        type_string: e.g. "Vec<(AccountId, Balance)>"
        data: SCALE encoded value
        spec_version: registered spec version

        Returns
        -------
        DecodedValue
        """
        runtime_version = None
        if spec_version is not None:
            runtime_version = self.get_runtime_version(spec_version)

        decoder = ValueDecoder(
            ScaleBytes(self.convert_data(data)), self.type_registry, runtime=runtime_version, config=self.config
        )
        value = decoder.decode_type_string(type_string)

        if decoder.remaining > 0:
            raise TrailingBytes(
                f'{decoder.remaining} bytes remaining after decoding "{type_string}"', path=[type_string]
            )

        return value

    def get_type_definition(self, type_string: str, spec_version: Optional[int] = None) -> TypeExpr:
        """
        Fully resolved type expression of given type string, e.g. "Balance" resolves to `Primitive(u128)`

        Parameters
        ----------
        type_string
        spec_version: registered spec version whose type overrides are applied

        Returns
        -------
        TypeExpr
        """
        if spec_version is not None:
            type_scope = self.get_runtime_version(spec_version).type_scope
        else:
            type_scope = self.type_registry.base_scope

        return self.type_registry.resolve_type_string(type_string, scope=type_scope)

    def __repr__(self):
        return f'<Decoder: {self.chain}>'
