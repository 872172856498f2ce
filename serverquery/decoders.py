# -*- coding: utf-8 -*-

# Every decoder takes the payload that follows the response opcode and raises
# MalformedPayload as soon as a read would run past the end of it.

import struct
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import MalformedPayload
from .packets import BEDROCK_MAGIC

THE_SHIP_APPID = 2400

EDF_PORT = 0x80
EDF_STEAMID = 0x10
EDF_SPECTATOR = 0x40
EDF_KEYWORDS = 0x20
EDF_GAMEID = 0x01


@dataclass
class InfoRecord:
    protocol: int
    name: str
    map: str
    folder: str
    game: str
    app_id: int
    players: int
    max_players: int
    bots: int
    server_type: str
    environment: str
    visibility: int
    vac: int
    version: Optional[str] = None
    # The Ship only
    mode: Optional[int] = None
    witnesses: Optional[int] = None
    duration: Optional[int] = None
    # extra data flag
    port: Optional[int] = None
    steam_id: Optional[int] = None
    spectator_port: Optional[int] = None
    spectator_name: Optional[str] = None
    keywords: Optional[str] = None
    game_id: Optional[int] = None

    @property
    def dedicated(self):
        if self.server_type == 'd':
            return 'Dedicated'
        elif self.server_type == 'l':
            return 'Listen'
        return 'SourceTV'

    @property
    def os(self):
        if self.environment == 'w':
            return 'Windows'
        elif self.environment in ('m', 'o'):
            return 'Mac'
        return 'Linux'


@dataclass
class Player:
    index: int
    name: str
    score: float
    duration: float


@dataclass
class PlayersRecord:
    players: List[Player] = field(default_factory=list)


@dataclass
class Rule:
    name: str
    value: str


@dataclass
class RulesRecord:
    rules: List[Rule] = field(default_factory=list)

    def as_dict(self):
        return {rule.name: rule.value for rule in self.rules}


@dataclass
class BedrockVersion:
    name: str
    protocol: int


@dataclass
class BedrockPongRecord:
    server_guid: int
    edition: str
    motd: str
    version: BedrockVersion
    players: int
    max_players: int
    server_id: str
    gamemode: str
    gamemode_id: Optional[int] = None
    port: Optional[int] = None
    port_ipv6: Optional[int] = None


# WORKER FUNCTIONS #

def unpack(fmt, data):
    size = struct.calcsize(fmt)
    if len(data) < size:
        raise MalformedPayload(f'need {size} bytes for {fmt!r}, {len(data)} left')
    return struct.unpack(fmt, data[:size])[0], data[size:]


def getByte(data):
    return unpack('<B', data)


def getShort(data):
    return unpack('<H', data)


def getLongLong(data):
    return unpack('<Q', data)


def getFloat(data):
    return unpack('<f', data)


def getChar(data):
    value, data = getByte(data)
    return chr(value), data


def getString(data):
    end = data.find(b'\x00')
    if end < 0:
        raise MalformedPayload('unterminated string')
    return str(data[:end], encoding='utf-8', errors='ignore'), data[end + 1:]


# DECODERS #

def decode_info(data):
    protocol, data = getByte(data)
    name, data = getString(data)
    map_name, data = getString(data)
    folder, data = getString(data)
    game, data = getString(data)
    app_id, data = getShort(data)
    players, data = getByte(data)
    max_players, data = getByte(data)
    bots, data = getByte(data)
    server_type, data = getChar(data)
    environment, data = getChar(data)
    visibility, data = getByte(data)
    vac, data = getByte(data)

    info = InfoRecord(protocol, name, map_name, folder, game, app_id, players, max_players, bots,
                      server_type, environment, visibility, vac)

    if app_id == THE_SHIP_APPID and data:
        info.mode, data = getByte(data)
        info.witnesses, data = getByte(data)
        info.duration, data = getByte(data)

    if not data:
        return info
    info.version, data = getString(data)

    if not data:
        return info
    edf, data = getByte(data)
    if edf & EDF_PORT:
        info.port, data = getShort(data)
    if edf & EDF_STEAMID:
        info.steam_id, data = getLongLong(data)
    if edf & EDF_SPECTATOR:
        info.spectator_port, data = getShort(data)
        info.spectator_name, data = getString(data)
    if edf & EDF_KEYWORDS:
        info.keywords, data = getString(data)
    if edf & EDF_GAMEID:
        info.game_id, data = getLongLong(data)

    return info


def decode_players(data):
    count, data = getByte(data)
    result = PlayersRecord()
    for _ in range(count):
        index, data = getByte(data)
        name, data = getString(data)
        score, data = getFloat(data)
        duration, data = getFloat(data)
        result.players.append(Player(index, name, score, duration))
    return result


def decode_rules(data):
    count, data = getShort(data)
    result = RulesRecord()
    for _ in range(count):
        name, data = getString(data)
        value, data = getString(data)
        result.rules.append(Rule(name, value))
    return result


def decode_bedrock_pong(data):
    _time, data = unpack('<Q', data)
    server_guid, data = unpack('>Q', data)
    magic, data = data[:16], data[16:]
    if magic != BEDROCK_MAGIC:
        raise MalformedPayload(f'bad offline message id {magic.hex()}')

    # RakNet writes this length big-endian, many servers little-endian. An exact fit wins.
    big, _ = unpack('>H', data)
    little, data = unpack('<H', data)
    if little == len(data):
        length = little
    elif big == len(data):
        length = big
    elif little <= len(data):
        length = little
    elif big <= len(data):
        length = big
    else:
        raise MalformedPayload(f'server id string of {little} bytes, {len(data)} left')

    fields = str(data[:length], encoding='utf-8', errors='ignore').split(';')
    if len(fields) < 8:
        raise MalformedPayload(f'pong has {len(fields)} fields, expected at least 8')

    try:
        protocol = int(fields[2])
        players = int(fields[4])
        max_players = int(fields[5])
    except ValueError as e:
        raise MalformedPayload(f'bad number in pong: {e}')

    return BedrockPongRecord(
        server_guid=server_guid,
        edition=fields[0],
        motd=fields[1],
        version=BedrockVersion(name=fields[3], protocol=protocol),
        players=players,
        max_players=max_players,
        server_id=fields[6],
        gamemode=fields[7],
        gamemode_id=optional_int(fields, 8),
        port=optional_int(fields, 9),
        port_ipv6=optional_int(fields, 10),
    )


def optional_int(fields, index):
    if index >= len(fields) or not fields[index].strip():
        return None
    try:
        return int(fields[index])
    except ValueError:
        return None
