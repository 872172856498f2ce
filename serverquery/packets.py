# A2S: https://developer.valvesoftware.com/wiki/Server_queries
# Bedrock: https://wiki.vg/Raknet_Protocol#Unconnected_Ping

import enum
import random
import struct
import time

A2S_PREFIX = b'\xFF\xFF\xFF\xFF'
A2S_SPLIT = b'\xFE\xFF\xFF\xFF'
A2S_INFO = A2S_PREFIX + b'TSource Engine Query\x00'
A2S_PLAYERS = A2S_PREFIX + b'\x55'
A2S_RULES = A2S_PREFIX + b'\x56'
A2S_CHALLENGE_REQUEST = b'\xFF\xFF\xFF\xFF'

BEDROCK_PING = b'\x01'
BEDROCK_MAGIC = bytes.fromhex('00FFFF00FEFEFEFEFDFDFDFD12345678')


class RequestKind(enum.Enum):
    INFO = 'info'
    PLAYERS = 'players'
    RULES = 'rules'
    BEDROCK_PING = 'bedrock_ping'


def client_time():
    return int(time.monotonic() * 1000) & 0xFFFFFFFFFFFFFFFF


def build(kind, challenge=None):
    """Request bytes for `kind`, echoing `challenge` when the server asked for one."""
    if kind is RequestKind.INFO:
        return A2S_INFO + (challenge if challenge is not None else b'')
    if kind is RequestKind.PLAYERS:
        return A2S_PLAYERS + (challenge if challenge is not None else A2S_CHALLENGE_REQUEST)
    if kind is RequestKind.RULES:
        return A2S_RULES + (challenge if challenge is not None else A2S_CHALLENGE_REQUEST)

    if kind is RequestKind.BEDROCK_PING:
        # no challenge, the guid identifies this client for the session
        guid = random.getrandbits(64)
        return BEDROCK_PING + struct.pack('<Q', client_time()) + BEDROCK_MAGIC + struct.pack('<Q', guid)

    raise ValueError(f'unknown request kind: {kind!r}')
