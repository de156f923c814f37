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

from typing import Optional

from substratedecoder.scale.values import DecodedValue, BytesValue, VariantValue
from substratedecoder.utils.ss58 import ss58_encode

__all__ = ['get_account_id', 'get_ss58_address']

ACCOUNT_ID_LENGTH = 32

# Variants of MultiAddress that carry a plain 32-byte account id
ACCOUNT_ID_VARIANTS = ('Id', 'Address32')


def get_account_id(address: DecodedValue) -> Optional[bytes]:
    """
    Extract the 32-byte account id from a decoded address, either a `MultiAddress` variant or a plain `AccountId`

    Returns
    -------
    bytes or None when the address does not refer to an account id (e.g. an account index)
    """
    if isinstance(address, VariantValue):
        if address.name not in ACCOUNT_ID_VARIANTS:
            return None
        address = address.payload

    if isinstance(address, BytesValue) and len(address.data) == ACCOUNT_ID_LENGTH:
        return address.data


def get_ss58_address(address: DecodedValue, ss58_format: int = 42) -> Optional[str]:
    """
    SS58 representation of the account id in a decoded address

    Parameters
    ----------
    address: decoded `Address`, `MultiAddress` or `AccountId`
    ss58_format: address format of the chain, e.g. 0 for Polkadot, 2 for Kusama, 42 for generic Substrate

    Returns
    -------
    str or None
    """
    account_id = get_account_id(address)

    if account_id is not None:
        return ss58_encode(account_id, ss58_format=ss58_format)
