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

import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional, Tuple, Mapping, List

from substratedecoder.constants import DEFAULT_EXTRINSIC_VERSION, SIGNED_EXTENSION_NAMES
from substratedecoder.exceptions import UnknownCall, UnknownVersion, ConfigurationError

__all__ = [
    'CallArgument', 'CallMetadata', 'ModuleMetadata', 'SignedExtensionMetadata', 'Metadata', 'RuntimeVersion',
    'MetadataStore'
]


@dataclass(frozen=True)
class CallArgument:
    name: str
    type: str


@dataclass(frozen=True)
class CallMetadata:
    index: int
    name: str
    args: Tuple[CallArgument, ...] = ()

    @classmethod
    def from_dict(cls, value: dict, index: int = None) -> 'CallMetadata':
        return cls(
            index=value.get('index', index),
            name=value['name'],
            args=tuple(CallArgument(name=arg['name'], type=arg['type']) for arg in value.get('args', []))
        )


@dataclass(frozen=True)
class ModuleMetadata:
    index: int
    name: str
    calls: Tuple[CallMetadata, ...] = ()

    def get_call(self, index: int) -> Optional[CallMetadata]:
        for call in self.calls:
            if call.index == index:
                return call

    def get_call_by_name(self, name: str) -> Optional[CallMetadata]:
        for call in self.calls:
            if call.name == name:
                return call

    @classmethod
    def from_dict(cls, value: dict, index: int = None) -> 'ModuleMetadata':
        return cls(
            index=value.get('index', index),
            name=value['name'],
            calls=tuple(CallMetadata.from_dict(call, index=idx) for idx, call in enumerate(value.get('calls') or []))
        )


@dataclass(frozen=True)
class SignedExtensionMetadata:
    identifier: str
    type: Optional[str] = None

    @property
    def name(self) -> str:
        """
        Field name of the extension in a decoded signature, e.g. "nonce" for CheckNonce
        """
        return SIGNED_EXTENSION_NAMES.get(self.identifier, self.identifier)

    @property
    def type_string(self) -> str:
        return self.type or self.identifier


@dataclass(frozen=True, eq=False)
class Metadata:
    """
    Snapshot of the call surface of one spec version: modules, their calls with argument type strings, the signed
    extensions of the extrinsic format and type aliases introduced by this version.

    Instances are produced by an external metadata extraction step and are never mutated after construction.
    """
    modules: Tuple[ModuleMetadata, ...] = ()
    signed_extensions: Tuple[SignedExtensionMetadata, ...] = ()
    type_aliases: Mapping[str, object] = field(default_factory=dict)
    extrinsic_version: int = DEFAULT_EXTRINSIC_VERSION

    def __post_init__(self):
        object.__setattr__(self, 'modules', tuple(self.modules))
        object.__setattr__(self, 'signed_extensions', tuple(self.signed_extensions))
        object.__setattr__(self, 'type_aliases', MappingProxyType(dict(self.type_aliases or {})))

        module_indices = [module.index for module in self.modules]
        if len(set(module_indices)) != len(module_indices):
            raise ConfigurationError('Module indices in metadata must be unique')

    def get_module(self, index: int) -> ModuleMetadata:
        for module in self.modules:
            if module.index == index:
                return module

        raise UnknownCall(f'Module with index {index} not found')

    def get_module_by_name(self, name: str) -> ModuleMetadata:
        for module in self.modules:
            if module.name == name:
                return module

        raise UnknownCall(f'Module "{name}" not found')

    def get_call(self, module_index: int, call_index: int) -> Tuple[ModuleMetadata, CallMetadata]:
        module = self.get_module(module_index)
        call = module.get_call(call_index)

        if call is None:
            raise UnknownCall(f'Call with index {call_index} not found in module "{module.name}"')

        return module, call

    def get_signed_extensions(self) -> List[SignedExtensionMetadata]:
        return list(self.signed_extensions)

    @classmethod
    def from_dict(cls, value: dict) -> 'Metadata':
        """
        Create Metadata from plain structures, e.g. a JSON fixture:

        {
            "modules": [{
                "index": 0, "name": "Timestamp",
                "calls": [{"name": "set", "args": [{"name": "now", "type": "Compact<Moment>"}]}]
            }],
            "signed_extensions": [{"identifier": "CheckNonce", "type": "Compact<Index>"}],
            "types": {"Moment": "u64"}
        }

        Indices of modules and calls default to their position.
        """
        try:
            return cls(
                modules=tuple(
                    ModuleMetadata.from_dict(module, index=idx) for idx, module in enumerate(value.get('modules', []))
                ),
                signed_extensions=tuple(
                    SignedExtensionMetadata(identifier=extension['identifier'], type=extension.get('type'))
                    for extension in value.get('signed_extensions', [])
                ),
                type_aliases=value.get('types', {}),
                extrinsic_version=value.get('extrinsic_version', DEFAULT_EXTRINSIC_VERSION)
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(f'Invalid metadata structure: {e!r}')


class RuntimeVersion:
    """
    What one decode needs of a registered spec version: its metadata and the matching type scope
    """

    def __init__(self, spec_version: int, metadata: Metadata, type_scope):
        self.spec_version = spec_version
        self.metadata = metadata
        self.type_scope = type_scope

    def __repr__(self):
        return f'<RuntimeVersion: {self.spec_version}>'


class MetadataStore:
    """
    Registered runtime versions keyed by spec version.

    Registration swaps in a new mapping under a lock (copy-on-write), so readers never lock and a decode holding a
    RuntimeVersion is not affected by registrations that complete while it runs.
    """

    def __init__(self):
        self.__versions = {}
        self.__lock = threading.Lock()

    def register(self, runtime_version: RuntimeVersion):
        with self.__lock:
            versions = dict(self.__versions)
            versions[runtime_version.spec_version] = runtime_version
            self.__versions = versions

    def get(self, spec_version: int) -> RuntimeVersion:
        runtime_version = self.__versions.get(spec_version)

        if runtime_version is None:
            raise UnknownVersion(f'Spec version {spec_version} is not registered')

        return runtime_version

    def get_metadata(self, spec_version: int) -> Metadata:
        return self.get(spec_version).metadata

    @property
    def spec_versions(self) -> list:
        return sorted(self.__versions.keys())

    def __contains__(self, spec_version):
        return spec_version in self.__versions

    def __len__(self):
        return len(self.__versions)
