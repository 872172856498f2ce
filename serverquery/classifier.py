import enum
from dataclasses import dataclass
from typing import Any

from .decoders import decode_bedrock_pong, decode_info, decode_players, decode_rules
from .errors import InvalidHeader, InvalidPacket, MalformedPayload
from .packets import A2S_PREFIX, A2S_SPLIT

BEDROCK_PONG = 0x1C

S2A_INFO = 0x49
S2A_PLAYERS = 0x44
S2A_RULES = 0x45
S2A_CHALLENGE = 0x41


class Decision(enum.Enum):
    WHOLE = 'whole'
    FRAGMENTED = 'fragmented'


class Kind(enum.Enum):
    INFO = 'info'
    PLAYERS = 'players'
    RULES = 'rules'
    BEDROCK_PONG = 'bedrock_pong'
    CHALLENGE = 'challenge'
    UNRECOGNIZED = 'unrecognized'


@dataclass
class ResponseEnvelope:
    kind: Kind
    value: Any

    @property
    def is_record(self):
        return self.kind not in (Kind.CHALLENGE, Kind.UNRECOGNIZED)


def decode_challenge(data):
    if len(data) < 4:
        raise MalformedPayload(f'challenge of {len(data)} bytes')
    return bytes(data[:4])


DECODERS = {
    S2A_INFO: (Kind.INFO, decode_info),
    S2A_PLAYERS: (Kind.PLAYERS, decode_players),
    S2A_RULES: (Kind.RULES, decode_rules),
    S2A_CHALLENGE: (Kind.CHALLENGE, decode_challenge),
    BEDROCK_PONG: (Kind.BEDROCK_PONG, decode_bedrock_pong),
}


def classify(data):
    if len(data) < 5:
        raise InvalidPacket(f'datagram of {len(data)} bytes')
    if data[:4] == A2S_SPLIT:
        return Decision.FRAGMENTED
    if data[:4] == A2S_PREFIX or data[0] == BEDROCK_PONG:
        return Decision.WHOLE
    raise InvalidHeader(f'unknown header {bytes(data[:4]).hex()}')


def envelope(data):
    """Decode a whole datagram, or a reassembled split payload, into a ResponseEnvelope."""
    if classify(data) is not Decision.WHOLE:
        raise InvalidHeader('split packet where a whole response was expected')

    # bedrock framing has no prefix, the opcode is the first byte
    if data[0] != BEDROCK_PONG:
        data = data[4:]

    header, data = data[0], data[1:]
    if header not in DECODERS:
        return ResponseEnvelope(Kind.UNRECOGNIZED, header)

    kind, decoder = DECODERS[header]
    return ResponseEnvelope(kind, decoder(data))
