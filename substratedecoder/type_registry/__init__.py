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

import os

from substratedecoder.exceptions import ConfigurationError
from substratedecoder.utils import load_json_file

__all__ = ['load_type_registry_preset', 'load_type_registry_file', 'PRESET_PATH']

PRESET_PATH = os.path.dirname(os.path.abspath(__file__))


def load_type_registry_file(file_path: str) -> dict:
    """
    Load a type registry from a JSON file in format `{"types": {"Balance": "u128", ...}}`
    """
    type_registry = load_json_file(file_path)

    if type(type_registry) is not dict or type(type_registry.get('types', {})) is not dict:
        raise ConfigurationError(f'Type registry file "{file_path}" must contain a "types" mapping')

    return type_registry


def load_type_registry_preset(name: str) -> dict:
    """
    Load one of the type registry presets shipped with this package, e.g. "default"
    """
    file_path = os.path.join(PRESET_PATH, f'{name}.json')

    if os.path.basename(name) != name or not os.path.isfile(file_path):
        raise ConfigurationError(f'Type registry preset "{name}" not found')

    return load_type_registry_file(file_path)
