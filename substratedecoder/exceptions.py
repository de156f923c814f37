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

from scalecodec.exceptions import ScaleDecodeException, RemainingScaleBytesNotEmptyException


class ConfigurationError(Exception):
    pass


class DecodeError(ScaleDecodeException):
    """
    Base class of all failures raised while parsing, resolving or decoding.

    `path` holds the chain of argument and type names that were being processed when the failure occurred,
    outermost first.
    """

    def __init__(self, message: str, path: list = None):
        self.message = message
        self.path = list(path or [])
        super().__init__(message)

    def __str__(self):
        if self.path:
            return '{} (path: {})'.format(self.message, ' -> '.join(self.path))
        return self.message


class MalformedTypeString(DecodeError):
    pass


class UnknownPrimitive(MalformedTypeString):
    pass


class NestingTooDeep(MalformedTypeString):
    pass


class UnknownType(DecodeError):
    pass


class ResolutionCycle(DecodeError):
    pass


class UnknownVersion(DecodeError):
    pass


class UnknownCall(DecodeError):
    pass


class CallDepthExceeded(DecodeError):
    pass


class UnexpectedEof(DecodeError):
    pass


class TrailingBytes(DecodeError, RemainingScaleBytesNotEmptyException):
    pass


class SequenceTooLong(DecodeError):
    pass


class InvalidBoolean(DecodeError):
    pass


class InvalidOption(DecodeError):
    pass


class UnknownVariant(DecodeError):
    pass


class InvalidCompact(DecodeError):
    pass


class NonCanonicalCompact(InvalidCompact):
    pass


class InvalidText(DecodeError):
    pass


class InvalidEra(DecodeError):
    pass


class InvalidHexString(DecodeError, ValueError):
    pass
