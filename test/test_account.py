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

import unittest

from substratedecoder import Decoder
from substratedecoder.scale.account import get_account_id, get_ss58_address
from substratedecoder.scale.types import PrimitiveKind
from substratedecoder.scale.values import BytesValue, VariantValue, IntegerValue

ALICE = bytes.fromhex('d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d')
BOB = bytes.fromhex('8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48')


class AccountIdTestCase(unittest.TestCase):

    def test_multi_address_id(self):
        self.assertEqual(ALICE, get_account_id(VariantValue('Id', 0, BytesValue(ALICE))))

    def test_multi_address_address32(self):
        self.assertEqual(BOB, get_account_id(VariantValue('Address32', 3, BytesValue(BOB))))

    def test_multi_address_index(self):
        address = VariantValue('Index', 1, IntegerValue(12, PrimitiveKind.U32))
        self.assertIsNone(get_account_id(address))
        self.assertIsNone(get_ss58_address(address))

    def test_plain_account_id(self):
        self.assertEqual(ALICE, get_account_id(BytesValue(ALICE)))

    def test_wrong_length(self):
        self.assertIsNone(get_account_id(BytesValue(ALICE[:20])))
        self.assertIsNone(get_account_id(VariantValue('Address20', 4, BytesValue(ALICE[:20]))))


class SS58AddressTestCase(unittest.TestCase):

    def test_generic_substrate_format(self):
        self.assertEqual(
            '5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY', get_ss58_address(BytesValue(ALICE))
        )
        self.assertEqual(
            '5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty',
            get_ss58_address(VariantValue('Id', 0, BytesValue(BOB)), ss58_format=42)
        )

    def test_polkadot_format(self):
        self.assertEqual(
            '15oF4uVJwmo4TdGW7VfQxNLavjCXviqxT9S1MgbjMNHr6Sp5', get_ss58_address(BytesValue(ALICE), ss58_format=0)
        )

    def test_decoded_address(self):
        decoder = Decoder('test')
        address = decoder.decode_type('Address', '0x00' + ALICE.hex())

        self.assertEqual(ALICE, get_account_id(address))
        self.assertEqual('5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY', get_ss58_address(address))


if __name__ == '__main__':
    unittest.main()
