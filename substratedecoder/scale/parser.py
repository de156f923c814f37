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

import re
from functools import lru_cache

from substratedecoder.constants import PARSE_CACHE_SIZE, MAX_TYPE_NESTING
from substratedecoder.exceptions import MalformedTypeString, NestingTooDeep
from substratedecoder.scale.types import TypeExpr, Primitive, Array, Sequence, Compact, Option, Tuple, Named, \
    get_numeric_kind

__all__ = ['TypeStringParser', 'split_top_level', 'find_closing_bracket', 'convert_type_string']

BRACKET_PAIRS = {'<': '>', '(': ')', '[': ']'}
CLOSING_BRACKETS = {'>': '<', ')': '(', ']': '['}

RE_IDENTIFIER = re.compile(r'^[A-Za-z_]\w*(?:::[A-Za-z_]\w*)*$')
RE_GENERIC_PREFIX = re.compile(r'^(?P<outer>[A-Za-z_]\w*(?:::[A-Za-z_]\w*)*)\s*<')
RE_NUMERIC_TOKEN = re.compile(r'^(?P<kind>[uif])(?P<width>\d+)$')
RE_ARRAY_SIZE = re.compile(r'^\d+$')

# Rewrites applied to type strings found in legacy call metadata, e.g. `<T::Lookup as StaticLookup>::Source`
TYPE_STRING_CONVERSIONS = (
    (re.compile(r'\s+'), ' '),
    (re.compile(r'<T::Lookup as StaticLookup>::Source', re.IGNORECASE), 'LookupSource'),
    (re.compile(r'<T as \w+(?:<I>)?>::', re.IGNORECASE), ''),
    (re.compile(r'\bT::'), ''),
    (re.compile(r'\b(?!(?:Vec|Option|Compact)\b)(\w+)<T(?:,\s*I)?>'), r'\1'),
    (re.compile(r'<(\w+) as HasCompact>::Type', re.IGNORECASE), r'Compact<\1>'),
)

GENERIC_BUILTINS = {
    'Vec': Sequence,
    'Option': Option,
    'Compact': Compact,
}


def convert_type_string(type_string: str) -> str:
    """
    Strip runtime-trait qualifications from a type string as it appears in call metadata, so
    `Compact<T::Balance>` becomes `Compact<Balance>` and `<T as Trait>::Proposal` becomes `Proposal`
    """
    for pattern, replacement in TYPE_STRING_CONVERSIONS:
        type_string = pattern.sub(replacement, type_string)
    return type_string.strip()


def check_nesting(stack: list, text: str):
    if len(stack) > MAX_TYPE_NESTING:
        raise NestingTooDeep(f'Brackets nested deeper than {MAX_TYPE_NESTING} levels in type string "{text[:64]}..."')


def find_closing_bracket(text: str, position: int) -> int:
    """
    Returns the index of the bracket that closes the opening bracket at `position`, tracking nesting of all bracket
    kinds
    """
    stack = []
    for index in range(position, len(text)):
        char = text[index]
        if char in BRACKET_PAIRS:
            stack.append(char)
            check_nesting(stack, text)
        elif char in CLOSING_BRACKETS:
            if not stack or stack[-1] != CLOSING_BRACKETS[char]:
                raise MalformedTypeString(f'Unbalanced "{char}" in type string "{text}"')
            stack.pop()
            if not stack:
                return index

    raise MalformedTypeString(f'Unclosed "{text[position]}" in type string "{text}"')


def split_top_level(text: str, separator: str = ',') -> list:
    """
    Split `text` on `separator` only where it is not nested inside `<>`, `()` or `[]`

    Parameters
    ----------
    text: the text between the outer brackets of a tuple or generic
    separator: single separator character

    Returns
    -------
    list of stripped parts
    """
    parts = []
    stack = []
    start = 0

    for index, char in enumerate(text):
        if char in BRACKET_PAIRS:
            stack.append(char)
            check_nesting(stack, text)
        elif char in CLOSING_BRACKETS:
            if not stack or stack[-1] != CLOSING_BRACKETS[char]:
                raise MalformedTypeString(f'Unbalanced "{char}" in type string "{text}"')
            stack.pop()
        elif char == separator and not stack:
            parts.append(text[start:index].strip())
            start = index + 1

    if stack:
        raise MalformedTypeString(f'Unclosed "{stack[-1]}" in type string "{text}"')

    parts.append(text[start:].strip())
    return parts


class TypeStringParser:
    """
    Turns type-name strings into `TypeExpr` trees.

    Shapes are tried in order: array (`[u8; 32]`), tuple (`(A, B)`), `Vec<T>` / `Option<T>` / `Compact<T>`, any
    other generic (`BTreeMap<K, V>`) and finally a bare name, which is left for the type registry to resolve.

    Parsed trees are immutable and cached per exact type string.
    """

    def __init__(self, cache_size: int = PARSE_CACHE_SIZE):
        self.__cached_parse = lru_cache(maxsize=cache_size)(self.parse_uncached)

    def parse(self, type_string: str) -> TypeExpr:
        if type(type_string) is not str:
            raise MalformedTypeString(f'Type string must be a str, not {type(type_string).__name__}')
        return self.__cached_parse(type_string)

    def cache_info(self):
        return self.__cached_parse.cache_info()

    def parse_uncached(self, type_string: str) -> TypeExpr:
        text = type_string.strip()

        if not text:
            raise MalformedTypeString('Empty type string')

        if text[0] == '[':
            return self.parse_array(text)

        if text[0] == '(':
            return self.parse_tuple(text)

        match = RE_GENERIC_PREFIX.match(text)
        if match:
            return self.parse_generic(match.group('outer'), text, match.end() - 1)

        if RE_IDENTIFIER.match(text):
            return Named(text)

        raise MalformedTypeString(f'Unable to parse type string "{type_string}"')

    def parse_array(self, text: str) -> Array:
        if find_closing_bracket(text, 0) != len(text) - 1:
            raise MalformedTypeString(f'Unexpected text after array declaration "{text}"')

        parts = split_top_level(text[1:-1], separator=';')

        if len(parts) != 2 or not parts[0]:
            raise MalformedTypeString(f'Array declaration "{text}" must be of form [<type>; <size>]')

        element_text, size_text = parts

        if not RE_ARRAY_SIZE.match(size_text):
            raise MalformedTypeString(f'Invalid size "{size_text}" in array declaration "{text}"')

        numeric_match = RE_NUMERIC_TOKEN.match(element_text)
        if numeric_match:
            element = Primitive(get_numeric_kind(numeric_match.group('kind'), int(numeric_match.group('width'))))
        else:
            element = self.parse(element_text)

        return Array(element=element, length=int(size_text))

    def parse_tuple(self, text: str) -> Tuple:
        if find_closing_bracket(text, 0) != len(text) - 1:
            raise MalformedTypeString(f'Unexpected text after tuple declaration "{text}"')

        inner = text[1:-1].strip()
        if not inner:
            return Tuple(())

        parts = split_top_level(inner)

        # Allow a trailing comma, as in `(A,)`
        if len(parts) > 1 and parts[-1] == '':
            parts = parts[:-1]

        if '' in parts:
            raise MalformedTypeString(f'Empty element in tuple declaration "{text}"')

        return Tuple(tuple(self.parse(part) for part in parts))

    def parse_generic(self, outer: str, text: str, open_position: int) -> TypeExpr:
        if find_closing_bracket(text, open_position) != len(text) - 1:
            raise MalformedTypeString(f'Unexpected text after generic declaration "{text}"')

        inner = text[open_position + 1:-1].strip()
        if not inner:
            raise MalformedTypeString(f'Missing type argument in "{text}"')

        parts = split_top_level(inner)

        if '' in parts:
            raise MalformedTypeString(f'Empty type argument in "{text}"')

        if outer in GENERIC_BUILTINS:
            if len(parts) != 1:
                raise MalformedTypeString(f'{outer} takes exactly one type argument: "{text}"')
            return GENERIC_BUILTINS[outer](self.parse(parts[0]))

        return Named(outer, tuple(self.parse(part) for part in parts))
