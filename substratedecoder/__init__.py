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

from .base import *
from .exceptions import *
from .scale.metadata import Metadata, ModuleMetadata, CallMetadata, CallArgument, SignedExtensionMetadata
from .scale.extrinsic import DecodedExtrinsic, ExtrinsicSignature
from .type_registry import load_type_registry_preset, load_type_registry_file

__version__ = '0.1.0'
