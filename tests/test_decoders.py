import struct
import unittest

from serverquery.decoders import (BedrockVersion, decode_bedrock_pong, decode_info, decode_players, decode_rules,
                                  getString)
from serverquery.errors import MalformedPayload

from tests.fakes import bedrock_pong, cstring, info_payload, players_payload, rules_payload

PONG_FIELDS = ['MCPE', 'Dedicated Server', '589', '1.20.0', '3', '10', '13253860892328930865', 'Survival',
               '1', '19132', '19133']


class TestInfo(unittest.TestCase):
    def test_required_fields(self):
        info = decode_info(info_payload())
        self.assertEqual(info.protocol, 0x11)
        self.assertEqual((info.name, info.map, info.folder, info.game), ('My Server', 'de_dust2', 'csgo', 'Counter-Strike'))
        self.assertEqual((info.app_id, info.players, info.max_players, info.bots), (730, 5, 24, 1))
        self.assertEqual((info.server_type, info.environment, info.visibility, info.vac), ('d', 'l', 0, 1))
        self.assertEqual((info.dedicated, info.os), ('Dedicated', 'Linux'))
        self.assertIsNone(info.version)
        self.assertIsNone(info.port)

    def test_extra_data(self):
        tail = (cstring('1.38.7.9') + bytes([0x80 | 0x10 | 0x40 | 0x20 | 0x01])
                + struct.pack('<HQH', 27015, 90071992547409920, 27020) + cstring('SourceTV')
                + cstring('secure,casual') + struct.pack('<Q', 730))
        info = decode_info(info_payload(tail=tail))
        self.assertEqual(info.version, '1.38.7.9')
        self.assertEqual(info.port, 27015)
        self.assertEqual(info.steam_id, 90071992547409920)
        self.assertEqual((info.spectator_port, info.spectator_name), (27020, 'SourceTV'))
        self.assertEqual(info.keywords, 'secure,casual')
        self.assertEqual(info.game_id, 730)

    def test_extra_data_flag_only_port(self):
        info = decode_info(info_payload(tail=cstring('1.0') + b'\x80' + struct.pack('<H', 27016)))
        self.assertEqual(info.port, 27016)
        self.assertIsNone(info.steam_id)

    def test_the_ship(self):
        info = decode_info(info_payload(app_id=2400, tail=b'\x01\x03\x04' + cstring('1.0.0.4')))
        self.assertEqual((info.mode, info.witnesses, info.duration), (1, 3, 4))
        self.assertEqual(info.version, '1.0.0.4')

    def test_windows_listen_server(self):
        info = decode_info(info_payload(server_type=b'l', environment=b'w'))
        self.assertEqual((info.dedicated, info.os), ('Listen', 'Windows'))

    def test_truncated_required_field(self):
        payload = info_payload()
        for end in (0, 1, 5, len(payload) - 1):
            with self.assertRaises(MalformedPayload):
                decode_info(payload[:end])

    def test_truncated_extra_data(self):
        with self.assertRaises(MalformedPayload):
            decode_info(info_payload(tail=cstring('1.0') + b'\x10' + b'\x01\x02'))


class TestPlayers(unittest.TestCase):
    def test_players(self):
        record = decode_players(players_payload([(0, 'alice', 3.0, 12.5), (1, 'bob', -1.0, 600.25)]))
        self.assertEqual([(p.index, p.name, p.score, p.duration) for p in record.players],
                         [(0, 'alice', 3.0, 12.5), (1, 'bob', -1.0, 600.25)])

    def test_no_players(self):
        self.assertEqual(decode_players(b'\x00').players, [])

    def test_fewer_players_than_count(self):
        payload = players_payload([(0, 'alice', 3.0, 12.5)])
        with self.assertRaises(MalformedPayload):
            decode_players(b'\x02' + payload[1:])

    def test_empty(self):
        with self.assertRaises(MalformedPayload):
            decode_players(b'')


class TestRules(unittest.TestCase):
    def test_pairs_keep_order(self):
        rules = [('mp_timelimit', '30'), ('sv_gravity', '800')]
        record = decode_rules(rules_payload(rules))
        self.assertEqual([(rule.name, rule.value) for rule in record.rules], rules)
        self.assertEqual(record.as_dict(), dict(rules))

    def test_missing_value(self):
        with self.assertRaises(MalformedPayload):
            decode_rules(struct.pack('<H', 1) + cstring('mp_timelimit'))

    def test_missing_count(self):
        with self.assertRaises(MalformedPayload):
            decode_rules(b'\x01')


class TestBedrockPong(unittest.TestCase):
    def test_all_fields(self):
        record = decode_bedrock_pong(bedrock_pong(PONG_FIELDS)[1:])
        self.assertEqual(record.server_guid, 0x0123456789ABCDEF)
        self.assertEqual(record.edition, 'MCPE')
        self.assertEqual(record.motd, 'Dedicated Server')
        self.assertEqual(record.version, BedrockVersion(name='1.20.0', protocol=589))
        self.assertEqual((record.players, record.max_players), (3, 10))
        self.assertEqual(record.server_id, '13253860892328930865')
        self.assertEqual(record.gamemode, 'Survival')
        self.assertEqual((record.gamemode_id, record.port, record.port_ipv6), (1, 19132, 19133))

    def test_optional_fields_absent(self):
        record = decode_bedrock_pong(bedrock_pong(PONG_FIELDS[:8] + [''])[1:])
        self.assertEqual(record.gamemode, 'Survival')
        self.assertIsNone(record.gamemode_id)
        self.assertIsNone(record.port)
        self.assertIsNone(record.port_ipv6)

    def test_little_endian_length(self):
        record = decode_bedrock_pong(bedrock_pong(PONG_FIELDS, length_format='<H')[1:])
        self.assertEqual(record.port_ipv6, 19133)

    def test_little_endian_length_with_small_low_byte(self):
        fields = list(PONG_FIELDS)
        fields[1] = 'x' * (512 - len(';'.join(PONG_FIELDS)) + len(PONG_FIELDS[1]))
        payload = bedrock_pong(fields, length_format='<H')[1:]
        self.assertEqual(payload[32:34], b'\x00\x02')
        record = decode_bedrock_pong(payload)
        self.assertEqual(len(record.motd), len(fields[1]))
        self.assertEqual(record.port_ipv6, 19133)

    def test_missing_required_field(self):
        with self.assertRaises(MalformedPayload):
            decode_bedrock_pong(bedrock_pong(PONG_FIELDS[:7])[1:])

    def test_non_numeric_player_count(self):
        fields = list(PONG_FIELDS)
        fields[4] = 'many'
        with self.assertRaises(MalformedPayload):
            decode_bedrock_pong(bedrock_pong(fields)[1:])

    def test_bad_magic(self):
        with self.assertRaises(MalformedPayload):
            decode_bedrock_pong(bedrock_pong(PONG_FIELDS, magic=b'\x00' * 16)[1:])

    def test_truncated(self):
        payload = bedrock_pong(PONG_FIELDS)[1:]
        for end in (0, 7, 20, 33):
            with self.assertRaises(MalformedPayload):
                decode_bedrock_pong(payload[:end])


class TestWorkers(unittest.TestCase):
    def test_get_string(self):
        self.assertEqual(getString(b'abc\x00rest'), ('abc', b'rest'))

    def test_unterminated_string(self):
        with self.assertRaises(MalformedPayload):
            getString(b'abc')


if __name__ == '__main__':
    unittest.main()
