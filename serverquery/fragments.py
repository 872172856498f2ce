import struct
import time
from dataclasses import dataclass

from .errors import InvalidPacket
from .packets import A2S_SPLIT

SPLIT_HEADER = '<LBBH'
SPLIT_HEADER_SIZE = struct.calcsize(SPLIT_HEADER)
COMPRESSED = 0x80000000


@dataclass(frozen=True)
class Fragment:
    packet_id: int
    total: int
    index: int
    size: int
    payload: bytes


def parse_fragment(data):
    """Split a `FE FF FF FF` datagram into its header fields and payload."""
    if data[:4] != A2S_SPLIT:
        raise InvalidPacket('not a split packet')
    data = data[4:]
    if len(data) < SPLIT_HEADER_SIZE:
        raise InvalidPacket(f'split header needs {SPLIT_HEADER_SIZE} bytes, got {len(data)}')

    packet_id, total, index, size = struct.unpack(SPLIT_HEADER, data[:SPLIT_HEADER_SIZE])
    if packet_id & COMPRESSED:
        raise InvalidPacket(f'compressed split response {packet_id:#010x} is not supported')
    if total == 0 or index >= total:
        raise InvalidPacket(f'fragment {index} of {total}')

    return Fragment(packet_id, total, index, size, data[SPLIT_HEADER_SIZE:])


class Reassembler:
    """Collects the fragments of one split response.

    A set is complete when it holds `total` distinct indices. A duplicate index
    replaces the earlier payload, a fragment of another packet id is ignored.
    The set expires `max_age` seconds after its first fragment arrived so a
    lost fragment can not keep it alive.
    """

    def __init__(self, max_age=5.0, clock=time.monotonic):
        self.max_age, self.clock = max_age, clock
        self.reset()

    def reset(self):
        self.fragments = {}
        self.packet_id = self.total = self.started = None

    def belongs(self, fragment):
        return not self.fragments or fragment.packet_id == self.packet_id

    def ingest(self, fragment):
        # fragments of another split response are dropped
        if not self.belongs(fragment):
            return None
        if not self.fragments:
            self.packet_id, self.total, self.started = fragment.packet_id, fragment.total, self.clock()
        elif fragment.total != self.total:
            raise InvalidPacket(f'fragment says {fragment.total} parts, earlier ones said {self.total}')

        self.fragments[fragment.index] = fragment.payload

        if len(self.fragments) < self.total:
            return None

        payload = b''.join(self.fragments[i] for i in range(self.total))
        self.reset()
        return payload

    def expired(self, now=None):
        if self.started is None:
            return False
        return (self.clock() if now is None else now) - self.started > self.max_age

    def __len__(self):
        return len(self.fragments)
