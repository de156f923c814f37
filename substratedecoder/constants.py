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

DEFAULT_EXTRINSIC_VERSION = 4
BIT_SIGNED = 0b10000000
UNMASK_VERSION = 0b01111111

CALL_INDEX_FORMAT_COMPACT = 'compact'
CALL_INDEX_FORMAT_U8 = 'u8'
CALL_INDEX_FORMATS = (CALL_INDEX_FORMAT_COMPACT, CALL_INDEX_FORMAT_U8)

DEFAULT_TYPE_REGISTRY_PRESET = 'default'
PARSE_CACHE_SIZE = 4096

# Upper bound of in-progress names on the resolution stack
MAX_RESOLUTION_DEPTH = 64

# Upper bound for brackets nested in a type string and for levels of a resolved type
MAX_TYPE_NESTING = 64

# Upper bound for values nested inside each other during one decode, including nested calls
MAX_VALUE_NESTING = 128

# Upper bound for nested Call values (e.g. batch inside batch)
MAX_CALL_DEPTH = 32

# Zero-sized elements cannot be bounded by the remaining bytes, so one decode may produce at most this many
MAX_ZERO_SIZED_ELEMENTS = 2 ** 16

ADDRESS_TYPE = 'Address'
SIGNATURE_TYPE = 'ExtrinsicSignature'

# Used when the metadata of a spec version does not declare signed extensions
DEFAULT_SIGNED_EXTENSIONS = (
    ('era', 'Era'),
    ('nonce', 'Compact<Index>'),
    ('tip', 'Compact<Balance>'),
)

SIGNED_EXTENSION_NAMES = {
    'CheckMortality': 'era',
    'CheckEra': 'era',
    'CheckNonce': 'nonce',
    'ChargeTransactionPayment': 'tip',
    'ChargeAssetTxPayment': 'asset_id',
    'CheckMetadataHash': 'metadata_check',
}
