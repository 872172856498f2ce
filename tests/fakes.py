import struct

from serverquery.errors import QueryTimeout, TransportError
from serverquery.packets import A2S_PREFIX, A2S_SPLIT, BEDROCK_MAGIC


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeTransport:
    """Replays scripted datagrams and records what was sent."""

    def __init__(self, responses=(), clock=None, delay=0.0, fail_send=False):
        self.responses = list(responses)
        self.sent = []
        self.waits = []
        self.clock, self.delay, self.fail_send = clock, delay, fail_send
        self.closed = False

    def send(self, data):
        if self.fail_send:
            raise TransportError('network is unreachable')
        self.sent.append(data)

    def recv(self, timeout=None):
        self.waits.append(timeout)
        if not self.responses:
            raise QueryTimeout('no more datagrams')
        if self.clock is not None:
            self.clock.advance(self.delay)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


def cstring(value):
    return value.encode('utf-8') + b'\x00'


def info_payload(name='My Server', map_name='de_dust2', folder='csgo', game='Counter-Strike', app_id=730,
                 players=5, max_players=24, bots=1, server_type=b'd', environment=b'l', visibility=0, vac=1,
                 tail=b''):
    return (b'\x11' + cstring(name) + cstring(map_name) + cstring(folder) + cstring(game)
            + struct.pack('<HBBB', app_id, players, max_players, bots)
            + server_type + environment + struct.pack('<BB', visibility, vac) + tail)


def players_payload(players):
    data = struct.pack('<B', len(players))
    for index, name, score, duration in players:
        data += struct.pack('<B', index) + cstring(name) + struct.pack('<ff', score, duration)
    return data


def rules_payload(rules):
    data = struct.pack('<H', len(rules))
    for name, value in rules:
        data += cstring(name) + cstring(value)
    return data


def a2s(opcode, payload):
    return A2S_PREFIX + bytes([opcode]) + payload


def challenge(token):
    return a2s(0x41, token)


def bedrock_pong(fields, guid=0x0123456789ABCDEF, time=5000, magic=BEDROCK_MAGIC, length_format='>H'):
    body = ';'.join(fields).encode('utf-8')
    return (b'\x1C' + struct.pack('<Q', time) + struct.pack('>Q', guid) + magic
            + struct.pack(length_format, len(body)) + body)


def split(packet_id, response, size=16, total=None):
    """Cut `response` into split datagrams of at most `size` payload bytes."""
    chunks = [response[i:i + size] for i in range(0, len(response), size)] or [b'']
    total = len(chunks) if total is None else total
    return [A2S_SPLIT + struct.pack('<LBBH', packet_id, total, index, 1248) + chunk
            for index, chunk in enumerate(chunks)]
