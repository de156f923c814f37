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
from typing import Optional, Mapping

from substratedecoder.constants import MAX_RESOLUTION_DEPTH, MAX_TYPE_NESTING, DEFAULT_TYPE_REGISTRY_PRESET
from substratedecoder.exceptions import ConfigurationError, MalformedTypeString, UnknownType, ResolutionCycle, \
    NestingTooDeep
from substratedecoder.scale.parser import TypeStringParser
from substratedecoder.scale.types import TypeExpr, Primitive, Array, Sequence, Compact, Option, Tuple, Named, \
    Struct, Enum, Era, Call, BUILTIN_TYPES, get_nesting_depth
from substratedecoder.type_registry import load_type_registry_preset

__all__ = ['TypeRegistry', 'TypeScope', 'RegistryEntry']

logger = logging.getLogger(__name__)

NULL_PAYLOADS = (None, 'Null', '()')


class RegistryEntry:
    """
    One named definition in a type registry tier. The definition is parsed on first use.
    """

    def __init__(self, name: str, params: tuple, definition):
        self.name = name
        self.params = params
        self.definition = definition
        self.type_expr = None

    def __repr__(self):
        return f'<RegistryEntry: {self.name}>'


class TypeScope:
    """
    Version-specific type overrides together with the resolution cache that is only valid for them.

    A new scope is created every time a spec version is (re-)registered, so resolutions made against replaced
    overrides are never observed by later decodes.
    """

    def __init__(self, spec_version: Optional[int], overrides: dict):
        self.spec_version = spec_version
        self.overrides = overrides
        self.cache = {}

    def __repr__(self):
        return f'<TypeScope: {self.spec_version}>'


class TypeRegistry:

    def __init__(self, chain: str, type_registry: dict = None, type_registry_preset: str = DEFAULT_TYPE_REGISTRY_PRESET,
                 parser: TypeStringParser = None, max_resolution_depth: int = MAX_RESOLUTION_DEPTH,
                 max_type_nesting: int = MAX_TYPE_NESTING):
        """
        Resolves type names for one chain against three tiers: overrides for a specific spec version, the chain
        catalog and a default catalog shared across chains.

        Parameters
        ----------
        chain: identifier of the chain, e.g. "kusama"
        type_registry: chain catalog in format {'types': {'Balance': 'u128', ...}}
        type_registry_preset: name of the shipped preset used as default catalog, None to disable
        parser: TypeStringParser to share parse results with
        max_resolution_depth: maximum number of names resolving into each other
        max_type_nesting: maximum number of levels of a resolved type
        """
        self.chain = chain
        self.parser = parser or TypeStringParser()
        self.max_resolution_depth = max_resolution_depth
        self.max_type_nesting = max_type_nesting

        self.chain_types = self.build_catalog(type_registry or {})

        if type_registry_preset:
            self.default_types = self.build_catalog(load_type_registry_preset(type_registry_preset))
        else:
            self.default_types = {}

        self.base_scope = TypeScope(None, {})

        self.__scopes = {}
        self.__lock = threading.Lock()

    def build_catalog(self, type_registry: dict) -> dict:
        """
        Validates a type registry dict and converts it into a catalog of `RegistryEntry` objects keyed by name

        Parameters
        ----------
        type_registry: dict in format {'types': {'Name': 'u32', 'Generic<T>': 'Vec<T>', 'Struct': {...}}}

        Returns
        -------
        dict
        """
        if type(type_registry) is not dict:
            raise ConfigurationError('Type registry must be a dict in format {"types": {...}}')

        types = type_registry.get('types', {})

        if not isinstance(types, Mapping):
            raise ConfigurationError('"types" in type registry must be a mapping')

        catalog = {}

        for key, definition in types.items():
            name, params = self.parse_entry_key(key)
            self.validate_definition(key, definition)
            catalog[name] = RegistryEntry(name, params, definition)

        return catalog

    def parse_entry_key(self, key: str) -> tuple:
        try:
            type_expr = self.parser.parse(key)
        except MalformedTypeString as e:
            raise ConfigurationError(f'Invalid type registry key "{key}": {e}')

        if not isinstance(type_expr, Named):
            raise ConfigurationError(f'Type registry key "{key}" must be a name')

        params = []
        for param in type_expr.type_args:
            if not isinstance(param, Named) or param.type_args:
                raise ConfigurationError(f'Generic parameters of type registry key "{key}" must be plain names')
            params.append(param.name)

        if len(set(params)) != len(params):
            raise ConfigurationError(f'Duplicate generic parameters in type registry key "{key}"')

        return type_expr.name, tuple(params)

    @staticmethod
    def validate_definition(key: str, definition):
        if type(definition) is str:
            return

        if type(definition) is not dict or definition.get('type') not in ('struct', 'enum'):
            raise ConfigurationError(f'Definition of "{key}" must be a type string, struct or enum')

        if definition['type'] == 'struct' or 'type_mapping' in definition:
            type_mapping = definition.get('type_mapping')
            if type(type_mapping) is not list or \
                    not all(type(item) in (list, tuple) and len(item) == 2 for item in type_mapping):
                raise ConfigurationError(f'"type_mapping" of "{key}" must be a list of [name, type] pairs')

        else:
            value_list = definition.get('value_list')
            if type(value_list) is dict:
                if not all(type(index) is int and 0 <= index <= 255 for index in value_list.values()):
                    raise ConfigurationError(f'Variant indices of "{key}" must be in range 0-255')
            elif type(value_list) is not list:
                raise ConfigurationError(f'Enum "{key}" requires a "type_mapping" or "value_list"')

    def compile_entry(self, entry: RegistryEntry) -> TypeExpr:
        if entry.type_expr is None:
            entry.type_expr = self.compile_definition(entry.definition)
        return entry.type_expr

    def compile_definition(self, definition) -> TypeExpr:
        if type(definition) is str:
            return self.parser.parse(definition)

        if definition['type'] == 'struct':
            return Struct(tuple(
                (name, self.parser.parse(type_string)) for name, type_string in definition['type_mapping']
            ))

        if 'type_mapping' in definition:
            return Enum(tuple(
                (name, None if payload in NULL_PAYLOADS else self.parser.parse(payload))
                for name, payload in definition['type_mapping']
            ))

        value_list = definition['value_list']

        if type(value_list) is dict:
            # Create placeholder list for unmapped indices
            variant_length = max(value_list.values(), default=-1) + 1
            variants = [(f'__{index}', None) for index in range(0, variant_length)]
            for name, index in value_list.items():
                variants[index] = (name, None)
            return Enum(tuple(variants))

        return Enum(tuple((name, None) for name in value_list))

    def create_scope(self, spec_version: Optional[int], type_aliases: Mapping = None) -> TypeScope:
        return TypeScope(spec_version, self.build_catalog({'types': dict(type_aliases or {})}))

    def register_version_types(self, spec_version: int, type_aliases: Mapping = None) -> TypeScope:
        """
        Register (or replace) the type overrides contributed by the metadata of a spec version

        Returns
        -------
        TypeScope
        """
        scope = self.create_scope(spec_version, type_aliases)

        with self.__lock:
            scopes = dict(self.__scopes)
            scopes[spec_version] = scope
            self.__scopes = scopes

        logger.debug(f'Registered {len(scope.overrides)} type overrides for spec version {spec_version}')

        return scope

    def get_scope(self, spec_version: Optional[int] = None) -> TypeScope:
        if spec_version is None:
            return self.base_scope
        return self.__scopes.get(spec_version, self.base_scope)

    def resolve(self, name: str, type_args: tuple = (), spec_version: Optional[int] = None,
                scope: TypeScope = None) -> TypeExpr:
        """
        Fully resolve a type name, including all names nested inside its definition

        Parameters
        ----------
        name: name of the type, e.g. "Balance" or "BTreeMap"
        type_args: type expressions substituted into the generic parameters of the definition
        spec_version: spec version whose overrides take precedence
        scope: explicit TypeScope, takes precedence over spec_version

        Returns
        -------
        TypeExpr
        """
        if scope is None:
            scope = self.get_scope(spec_version)

        return self.resolve_named(name, tuple(type_args), scope, [], 0)

    def resolve_type_string(self, type_string: str, spec_version: Optional[int] = None,
                            scope: TypeScope = None) -> TypeExpr:
        if scope is None:
            scope = self.get_scope(spec_version)

        return self.resolve_expr(self.parser.parse(type_string), scope, {}, [], 0)

    @classmethod
    def substitute(cls, type_expr: TypeExpr, bindings: dict) -> TypeExpr:
        """
        Replace generic placeholders in `type_expr` with the expressions bound to them, without resolving any names
        """
        if not bindings:
            return type_expr

        if isinstance(type_expr, Named):
            if not type_expr.type_args and type_expr.name in bindings:
                return bindings[type_expr.name]
            return Named(type_expr.name, tuple(cls.substitute(arg, bindings) for arg in type_expr.type_args))

        elif isinstance(type_expr, Array):
            return Array(cls.substitute(type_expr.element, bindings), type_expr.length)

        elif isinstance(type_expr, Sequence):
            return Sequence(cls.substitute(type_expr.element, bindings))

        elif isinstance(type_expr, Compact):
            return Compact(cls.substitute(type_expr.inner, bindings))

        elif isinstance(type_expr, Option):
            return Option(cls.substitute(type_expr.inner, bindings))

        elif isinstance(type_expr, Tuple):
            return Tuple(tuple(cls.substitute(element, bindings) for element in type_expr.elements))

        elif isinstance(type_expr, Struct):
            return Struct(tuple((name, cls.substitute(field, bindings)) for name, field in type_expr.fields))

        elif isinstance(type_expr, Enum):
            return Enum(tuple(
                (name, None if payload is None else cls.substitute(payload, bindings))
                for name, payload in type_expr.variants
            ))

        return type_expr

    def resolve_expr(self, type_expr: TypeExpr, scope: TypeScope, bindings: dict, stack: list,
                     depth: int = 0) -> TypeExpr:

        if depth > self.max_type_nesting:
            raise NestingTooDeep(
                f'Type nested deeper than {self.max_type_nesting} levels', path=[str(Named(*key)) for key in stack]
            )

        if isinstance(type_expr, Named):
            if not type_expr.type_args and type_expr.name in bindings:
                return self.resolve_expr(bindings[type_expr.name], scope, {}, stack, depth)

            # Arguments are resolved when the definition uses them, so unused ones (e.g. bounds) may be unknown
            type_args = tuple(self.substitute(arg, bindings) for arg in type_expr.type_args)
            return self.resolve_named(type_expr.name, type_args, scope, stack, depth)

        elif isinstance(type_expr, (Primitive, Era, Call)):
            return type_expr

        elif isinstance(type_expr, Array):
            return Array(self.resolve_expr(type_expr.element, scope, bindings, stack, depth + 1), type_expr.length)

        elif isinstance(type_expr, Sequence):
            return Sequence(self.resolve_expr(type_expr.element, scope, bindings, stack, depth + 1))

        elif isinstance(type_expr, Compact):
            return Compact(self.resolve_expr(type_expr.inner, scope, bindings, stack, depth + 1))

        elif isinstance(type_expr, Option):
            return Option(self.resolve_expr(type_expr.inner, scope, bindings, stack, depth + 1))

        elif isinstance(type_expr, Tuple):
            return Tuple(tuple(
                self.resolve_expr(element, scope, bindings, stack, depth + 1) for element in type_expr.elements
            ))

        elif isinstance(type_expr, Struct):
            return Struct(tuple(
                (name, self.resolve_expr(field, scope, bindings, stack, depth + 1))
                for name, field in type_expr.fields
            ))

        elif isinstance(type_expr, Enum):
            return Enum(tuple(
                (name, None if payload is None else self.resolve_expr(payload, scope, bindings, stack, depth + 1))
                for name, payload in type_expr.variants
            ))

        raise UnknownType(f'Unsupported type expression {type_expr!r}', path=[str(Named(*key)) for key in stack])

    def resolve_named(self, name: str, type_args: tuple, scope: TypeScope, stack: list, depth: int = 0) -> TypeExpr:
        cache_key = (name, type_args)

        resolved = scope.cache.get(cache_key)
        if resolved is not None:
            # A cached type can be reused at a deeper level than where it was resolved
            if depth + get_nesting_depth(resolved) > self.max_type_nesting:
                raise NestingTooDeep(
                    f'Type nested deeper than {self.max_type_nesting} levels',
                    path=[str(Named(*key)) for key in stack] + [str(Named(name, type_args))]
                )
            return resolved

        if not type_args and name in BUILTIN_TYPES:
            return BUILTIN_TYPES[name]

        path = [str(Named(*key)) for key in stack] + [str(Named(name, type_args))]

        if cache_key in stack:
            raise ResolutionCycle(f'Type "{name}" refers to itself', path=path)

        if len(stack) >= self.max_resolution_depth:
            raise ResolutionCycle(f'Maximum resolution depth of {self.max_resolution_depth} exceeded', path=path)

        entry = self.lookup(name, scope)

        if entry is None:
            raise UnknownType(f'Type "{name}" not found in type registry of "{self.chain}"', path=path)

        if len(type_args) != len(entry.params):
            raise UnknownType(
                f'Type "{name}" expects {len(entry.params)} type arguments, {len(type_args)} given',
                path=path
            )

        bindings = dict(zip(entry.params, type_args))

        stack.append(cache_key)
        try:
            resolved = self.resolve_expr(self.compile_entry(entry), scope, bindings, stack, depth)
        except MalformedTypeString as e:
            if not e.path:
                e.path = path
            raise
        finally:
            stack.pop()

        logger.debug(f'Resolved "{path[-1]}" for spec version {scope.spec_version}')

        # Only completed resolutions are stored
        return scope.cache.setdefault(cache_key, resolved)

    def lookup(self, name: str, scope: TypeScope) -> Optional[RegistryEntry]:
        for catalog in (scope.overrides, self.chain_types, self.default_types):
            entry = catalog.get(name)
            if entry is not None:
                return entry
