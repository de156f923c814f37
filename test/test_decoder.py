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
import unittest
from hashlib import blake2b

from substratedecoder import Decoder, Metadata
from substratedecoder.exceptions import ConfigurationError, UnexpectedEof, TrailingBytes, UnknownCall, \
    UnknownVersion, InvalidCompact, CallDepthExceeded, UnknownType, NestingTooDeep
from substratedecoder.scale.extrinsic import ExtrinsicDecoder
from substratedecoder.scale.types import Compact, Primitive, PrimitiveKind
from substratedecoder.scale.values import CallValue, IntegerValue, ListValue, EraValue
from substratedecoder.utils import load_json_file

ALICE = 'd43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d'
BOB = '8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48'

TIMESTAMP_EXTRINSIC = '0x0400000b80eeb3306f01'

SIGNED_TRANSFER_EXTRINSIC = '0x84' + '00' + ALICE + '01' + 'aa' * 64 + 'c503' + '14' + '00' + '0800' + '00' + BOB + \
                            '070010a5d4e8'

BATCH_EXTRINSIC = '0x040c0008' + '0400' + '0b80eeb3306f01' + '0000' + '08abcd'

AS_MULTI_EXTRINSIC = '0x040c04' + '0200' + '04' + BOB + '01' + '0a000000' + '01000000' + '0800' + '00' + ALICE + 'a10f'


def blake2_256_hex(data_hex: str) -> str:
    return '0x' + blake2b(bytes.fromhex(data_hex), digest_size=32).digest().hex()


class DecoderTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        module_path = os.path.dirname(__file__)
        cls.metadata_timestamp = load_json_file(os.path.join(module_path, 'fixtures', 'metadata_timestamp.json'))
        cls.metadata_node = load_json_file(os.path.join(module_path, 'fixtures', 'metadata_node.json'))

    def setUp(self):
        self.decoder = Decoder('test', ss58_format=42)
        self.decoder.register_version(1, self.metadata_timestamp)
        self.decoder.register_version(2, self.metadata_node)

    def test_decode_timestamp_extrinsic(self):
        extrinsic = self.decoder.decode_extrinsic(1, TIMESTAMP_EXTRINSIC)

        self.assertFalse(extrinsic.signed)
        self.assertIsNone(extrinsic.signature)
        self.assertEqual(4, extrinsic.version)
        self.assertEqual(1, extrinsic.spec_version)
        self.assertEqual('Timestamp', extrinsic.module_name)
        self.assertEqual('set', extrinsic.call_name)
        self.assertEqual(0, extrinsic.module_index)
        self.assertEqual(0, extrinsic.call_index)
        self.assertEqual((('now', IntegerValue(1577070096000, PrimitiveKind.U64)),), extrinsic.args)

    def test_timestamp_extrinsic_hashes(self):
        extrinsic = self.decoder.decode_extrinsic(1, TIMESTAMP_EXTRINSIC)

        self.assertEqual(blake2_256_hex(TIMESTAMP_EXTRINSIC[2:]), extrinsic.extrinsic_hash)
        self.assertEqual(blake2_256_hex('00000b80eeb3306f01'), extrinsic.call_hash)

    def test_timestamp_extrinsic_value(self):
        extrinsic = self.decoder.decode_extrinsic(1, bytes.fromhex(TIMESTAMP_EXTRINSIC[2:]))

        self.assertEqual({
            'extrinsic_hash': blake2_256_hex(TIMESTAMP_EXTRINSIC[2:]),
            'extrinsic_length': 10,
            'version': 4,
            'signed': False,
            'call': {
                'call_index': '0x0000',
                'call_module': 'Timestamp',
                'call_function': 'set',
                'call_args': [{'name': 'now', 'type': 'Compact<Moment>', 'value': 1577070096000}]
            }
        }, extrinsic.value)

    def test_decode_signed_extrinsic(self):
        extrinsic = self.decoder.decode_extrinsic(2, SIGNED_TRANSFER_EXTRINSIC)

        self.assertTrue(extrinsic.signed)
        self.assertEqual(4, extrinsic.version)
        self.assertEqual('Balances', extrinsic.module_name)
        self.assertEqual('transfer', extrinsic.call_name)

        signature = extrinsic.signature
        self.assertEqual(bytes.fromhex(ALICE), signature.account_id)
        self.assertEqual('5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY', signature.ss58_address)
        self.assertEqual('Sr25519', signature.signature_scheme)
        self.assertEqual(['era', 'nonce', 'tip'], [name for name, _ in signature.extra])
        self.assertEqual(EraValue(64, 60), signature.get_extra('era'))
        self.assertEqual(5, signature.get_extra('nonce').value)
        self.assertEqual(0, signature.get_extra('tip').value)

        self.assertEqual({'Id': f'0x{BOB}'}, extrinsic.call.get_arg('dest').value)
        self.assertEqual(10 ** 12, extrinsic.call.get_arg('value').value)

    def test_signed_extrinsic_value(self):
        value = self.decoder.decode_extrinsic(2, SIGNED_TRANSFER_EXTRINSIC).value

        self.assertEqual('5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY', value['address'])
        self.assertEqual({'Sr25519': '0x' + 'aa' * 64}, value['signature'])
        self.assertEqual({'Mortal': (64, 60)}, value['era'])
        self.assertEqual(5, value['nonce'])
        self.assertEqual(0, value['tip'])
        self.assertEqual('0x0200', value['call']['call_index'])

    def test_signed_extrinsic_without_ss58_format(self):
        decoder = Decoder('test')
        decoder.register_version(2, self.metadata_node)

        extrinsic = decoder.decode_extrinsic(2, SIGNED_TRANSFER_EXTRINSIC)

        self.assertIsNone(extrinsic.signature.ss58_address)
        self.assertEqual({'Id': f'0x{ALICE}'}, extrinsic.value['address'])

    def test_signed_extrinsic_default_extensions(self):
        extrinsic = self.decoder.decode_extrinsic(
            1, '0x84' + '00' + ALICE + '01' + 'aa' * 64 + '00' + '04' + '00' + '0000' + '0b80eeb3306f01'
        )

        self.assertTrue(extrinsic.signature.get_extra('era').is_immortal())
        self.assertEqual(1, extrinsic.signature.get_extra('nonce').value)
        self.assertEqual(0, extrinsic.signature.get_extra('tip').value)
        self.assertEqual(1577070096000, extrinsic.call.get_arg('now').value)

    def test_signed_extrinsic_truncated_signature(self):
        with self.assertRaises(UnexpectedEof) as cm:
            self.decoder.decode_extrinsic(2, '0x84' + '00' + ALICE + '01' + 'aa' * 10)

        self.assertEqual(['signature', 'ExtrinsicSignature', 'Sr25519'], cm.exception.path)

    def test_nested_calls(self):
        extrinsic = self.decoder.decode_extrinsic(2, BATCH_EXTRINSIC)

        self.assertEqual('Utility', extrinsic.module_name)
        self.assertEqual('batch', extrinsic.call_name)

        calls = extrinsic.call.get_arg('calls')
        self.assertIsInstance(calls, ListValue)
        self.assertEqual(2, len(calls))
        self.assertIsInstance(calls[0], CallValue)

        self.assertEqual('Timestamp', calls[0].module_name)
        self.assertEqual(1577070096000, calls[0].get_arg('now').value)
        self.assertEqual(blake2_256_hex('04000b80eeb3306f01'), calls[0].call_hash)

        self.assertEqual('remark', calls[1].call_name)
        self.assertEqual('0xabcd', calls[1].get_arg('_remark').value)

    def test_nested_calls_value(self):
        value = self.decoder.decode_extrinsic(2, BATCH_EXTRINSIC).value

        self.assertEqual([
            {
                'call_index': '0x0100',
                'call_module': 'Timestamp',
                'call_function': 'set',
                'call_args': [{'name': 'now', 'type': 'Compact<T::Moment>', 'value': 1577070096000}]
            },
            {
                'call_index': '0x0000',
                'call_module': 'System',
                'call_function': 'remark',
                'call_args': [{'name': '_remark', 'type': 'Vec<u8>', 'value': '0xabcd'}]
            }
        ], value['call']['call_args'][0]['value'])

    def test_boxed_call_with_struct_argument(self):
        extrinsic = self.decoder.decode_extrinsic(2, AS_MULTI_EXTRINSIC)

        self.assertEqual('as_multi', extrinsic.call_name)
        self.assertEqual(2, extrinsic.call.get_arg('threshold').value)
        self.assertEqual([f'0x{BOB}'], extrinsic.call.get_arg('other_signatories').value)
        self.assertEqual({'height': 10, 'index': 1}, extrinsic.call.get_arg('maybe_timepoint').value)

        inner_call = extrinsic.call.get_arg('call')
        self.assertEqual('Balances', inner_call.module_name)
        self.assertEqual('transfer', inner_call.call_name)
        self.assertEqual(1000, inner_call.get_arg('value').value)

    def test_call_depth_limit(self):
        runtime_version = self.decoder.get_runtime_version(2)
        config = dict(self.decoder.config, max_call_depth=1)

        with self.assertRaises(CallDepthExceeded) as cm:
            ExtrinsicDecoder(self.decoder.type_registry, runtime_version, config=config).decode(
                bytes.fromhex(BATCH_EXTRINSIC[2:])
            )

        self.assertEqual(['Utility.batch', 'calls', 'Vec<Call>', '[0]'], cm.exception.path)

    def test_decode_type_call(self):
        value = self.decoder.decode_type('Call', '0x0000' + '0b80eeb3306f01', spec_version=1)

        self.assertIsInstance(value, CallValue)
        self.assertEqual('set', value.call_name)

    def test_length_prefixed(self):
        decoder = Decoder('test', length_prefixed=True)
        decoder.register_version(1, self.metadata_timestamp)

        extrinsic = decoder.decode_extrinsic(1, '0x28' + TIMESTAMP_EXTRINSIC[2:])
        self.assertEqual(1577070096000, extrinsic.call.get_arg('now').value)

        with self.assertRaises(UnexpectedEof) as cm:
            decoder.decode_extrinsic(1, '0x2c' + TIMESTAMP_EXTRINSIC[2:])
        self.assertEqual(['length'], cm.exception.path)

        self.assertRaises(TrailingBytes, decoder.decode_extrinsic, 1, '0x24' + TIMESTAMP_EXTRINSIC[2:])

    def test_u8_call_index(self):
        decoder = Decoder('test', call_index_format='u8')
        decoder.register_version(2, self.metadata_node)

        extrinsic = decoder.decode_extrinsic(2, '0x04' + '0100' + '0b80eeb3306f01')
        self.assertEqual('Timestamp', extrinsic.module_name)
        self.assertEqual('set', extrinsic.call_name)
        self.assertEqual('0x0100', extrinsic.call.call_index)

    def test_trailing_bytes(self):
        with self.assertRaises(TrailingBytes) as cm:
            self.decoder.decode_extrinsic(1, TIMESTAMP_EXTRINSIC + '00')

        self.assertEqual(['Timestamp.set'], cm.exception.path)

    def test_allow_trailing_bytes(self):
        decoder = Decoder('test', allow_trailing_bytes=True)
        decoder.register_version(1, self.metadata_timestamp)

        with self.assertLogs('substratedecoder.scale.extrinsic', level='WARNING'):
            extrinsic = decoder.decode_extrinsic(1, TIMESTAMP_EXTRINSIC + '00')

        self.assertEqual(1577070096000, extrinsic.call.get_arg('now').value)

    def test_truncated_argument(self):
        with self.assertRaises(UnexpectedEof) as cm:
            self.decoder.decode_extrinsic(1, TIMESTAMP_EXTRINSIC[:-6])

        self.assertEqual(['Timestamp.set', 'now', 'Compact<Moment>'], cm.exception.path)

    def test_empty_extrinsic(self):
        with self.assertRaises(UnexpectedEof) as cm:
            self.decoder.decode_extrinsic(1, '0x')

        self.assertEqual(['version'], cm.exception.path)

    def test_unknown_call(self):
        self.assertRaises(UnknownCall, self.decoder.decode_extrinsic, 1, '0x04000400')
        self.assertRaises(UnknownCall, self.decoder.decode_extrinsic, 1, '0x040800')

    def test_unknown_version(self):
        self.assertRaises(UnknownVersion, self.decoder.decode_extrinsic, 999, TIMESTAMP_EXTRINSIC)

    def test_unknown_argument_type(self):
        self.decoder.register_version(3, {
            'modules': [{'name': 'Custom', 'calls': [{'name': 'do', 'args': [{'name': 'x', 'type': 'Unknown'}]}]}]
        })

        with self.assertRaises(UnknownType) as cm:
            self.decoder.decode_extrinsic(3, '0x04000000')

        self.assertEqual(['Custom.do', 'x', 'Unknown'], cm.exception.path)

    def test_unknown_nested_argument_type_path(self):
        decoder = Decoder('test', type_registry={'types': {'Wrapper': 'Vec<Missing>'}})
        decoder.register_version(1, {
            'modules': [{'name': 'Custom', 'calls': [{'name': 'do', 'args': [{'name': 'x', 'type': 'Wrapper'}]}]}]
        })

        with self.assertRaises(UnknownType) as cm:
            decoder.decode_extrinsic(1, '0x04000000')

        self.assertEqual(['Custom.do', 'x', 'Wrapper', 'Missing'], cm.exception.path)

    def test_deeply_nested_argument_type(self):
        decoder = Decoder('test')
        decoder.register_version(1, {'modules': [{'name': 'Custom', 'calls': [{'name': 'do', 'args': [
            {'name': 'x', 'type': 'Option<' * 400 + 'u8' + '>' * 400}
        ]}]}]})

        with self.assertRaises(NestingTooDeep) as cm:
            decoder.decode_extrinsic(1, '0x04000000')

        self.assertEqual(['Custom.do', 'x'], cm.exception.path[:2])

        with self.assertRaises(NestingTooDeep):
            decoder.get_type_definition('Vec<' * 400 + 'u8' + '>' * 400)

    def test_deeply_nested_aliases(self):
        types = {'Level0': 'u8'}
        for level in range(1, 40):
            types[f'Level{level}'] = f'Option<Option<Level{level - 1}>>'

        decoder = Decoder('test', type_registry={'types': types})

        self.assertEqual(Primitive(PrimitiveKind.U8), decoder.get_type_definition('Level0'))
        self.assertRaises(NestingTooDeep, decoder.get_type_definition, 'Level39')

    def test_extrinsic_version_mismatch_is_logged(self):
        decoder = Decoder('test')
        decoder.register_version(1, dict(self.metadata_timestamp, extrinsic_version=5))

        with self.assertLogs('substratedecoder.scale.extrinsic', level='WARNING') as cm:
            extrinsic = decoder.decode_extrinsic(1, TIMESTAMP_EXTRINSIC)

        self.assertEqual(4, extrinsic.version)
        self.assertIn('differs from version 5', cm.output[0])

    def test_re_registration(self):
        runtime_version = self.decoder.get_runtime_version(1)
        self.decoder.decode_extrinsic(1, TIMESTAMP_EXTRINSIC)

        metadata = Metadata.from_dict(dict(self.metadata_timestamp, types={'Moment': 'u32'}))
        self.decoder.register_version(1, metadata)

        # Timestamp exceeds the range of u32
        self.assertRaises(InvalidCompact, self.decoder.decode_extrinsic, 1, TIMESTAMP_EXTRINSIC)

        # A snapshot taken before the registration is not affected
        extrinsic = ExtrinsicDecoder(self.decoder.type_registry, runtime_version, config=self.decoder.config).decode(
            bytes.fromhex(TIMESTAMP_EXTRINSIC[2:])
        )
        self.assertEqual(1577070096000, extrinsic.call.get_arg('now').value)

    def test_get_type_definition(self):
        self.assertEqual(
            Compact(Primitive(PrimitiveKind.U64)), self.decoder.get_type_definition('Compact<Moment>', spec_version=2)
        )
        self.assertEqual(Primitive(PrimitiveKind.U128), self.decoder.get_type_definition('Balance'))

    def test_spec_versions(self):
        self.assertEqual([1, 2], self.decoder.spec_versions)

    def test_register_logs_debug_message(self):
        with self.assertLogs('substratedecoder.base', level='DEBUG'):
            self.decoder.register_version(4, self.metadata_timestamp)


class DecoderConfigurationTestCase(unittest.TestCase):

    def test_config(self):
        decoder = Decoder('kusama', ss58_format=2, call_index_format='u8')

        self.assertEqual(2, decoder.config['ss58_format'])
        self.assertEqual('u8', decoder.config['call_index_format'])
        self.assertFalse(decoder.config['length_prefixed'])
        self.assertEqual('kusama', decoder.chain)

    def test_invalid_options(self):
        self.assertRaises(ConfigurationError, Decoder, '')
        self.assertRaises(ConfigurationError, Decoder, None)
        self.assertRaises(ConfigurationError, Decoder, 'test', call_index_format='u16')
        self.assertRaises(ConfigurationError, Decoder, 'test', ss58_format=-1)
        self.assertRaises(ConfigurationError, Decoder, 'test', type_registry='types')
        self.assertRaises(ConfigurationError, Decoder, 'test', type_registry={'types': {'Foo': 1}})

    def test_invalid_registration(self):
        decoder = Decoder('test')

        self.assertRaises(ConfigurationError, decoder.register_version, '1', {})
        self.assertRaises(ConfigurationError, decoder.register_version, 1, 'metadata')
        self.assertRaises(ConfigurationError, decoder.register_version, 1, {'modules': [{'calls': []}]})
        self.assertRaises(ConfigurationError, decoder.register_version, 1, {'types': {'Vec<u8>': 'u8'}})


if __name__ == '__main__':
    unittest.main()
