import enum
import time
from dataclasses import dataclass
from typing import Any, Optional

from . import packets
from .classifier import Decision, Kind, classify, envelope
from .errors import ChallengeRequired, InvalidHeader, InvalidPacket, QueryError, QueryTimeout, TransportError
from .fragments import Reassembler, parse_fragment


class State(enum.Enum):
    SENT = 'sent'
    AWAITING_RESPONSE = 'awaiting_response'
    CHALLENGE_RECEIVED = 'challenge_received'
    COMPLETED = 'completed'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


FINISHED = (State.COMPLETED, State.FAILED, State.CANCELLED)

EXPECTED = {
    packets.RequestKind.INFO: Kind.INFO,
    packets.RequestKind.PLAYERS: Kind.PLAYERS,
    packets.RequestKind.RULES: Kind.RULES,
    packets.RequestKind.BEDROCK_PING: Kind.BEDROCK_PONG,
}


@dataclass
class QueryResult:
    kind: packets.RequestKind
    state: State
    record: Optional[Any] = None
    rtt: Optional[float] = None
    error: Optional[QueryError] = None
    retried: bool = False

    @property
    def ok(self):
        return self.state is State.COMPLETED

    def __bool__(self):
        return self.ok


def discard(value):
    pass


class QuerySession(object):
    """One request/response exchange over `transport`.

    The server may answer with a challenge once; the request is then sent again
    carrying the token. Split responses are collected until complete. `feed()`
    advances the session by one datagram, `run()` drives it to the end.
    """

    def __init__(self, transport, kind, timeout=5.0, log=None, clock=time.monotonic):
        self.transport, self.kind, self.timeout = transport, kind, timeout
        self.log = log or discard
        self.clock = clock
        self.reassembler = Reassembler(max_age=timeout, clock=clock)
        self.state = State.SENT
        self.record = self.rtt = self.error = self.sent_at = None
        self.retried = False

    @property
    def finished(self):
        return self.state in FINISHED

    @property
    def deadline(self):
        return self.sent_at + self.timeout

    def start(self):
        self.send()
        return self.state

    def send(self, challenge=None):
        self.state = State.SENT
        self.reassembler.reset()
        packet = packets.build(self.kind, challenge)
        try:
            self.transport.send(packet)
        except TransportError as e:
            return self.fail(e)
        self.sent_at = self.clock()
        self.state = State.AWAITING_RESPONSE
        self.log(f'{self.kind.value}: sent {len(packet)} bytes{" with challenge " + challenge.hex() if challenge else ""}')
        return self.state

    def feed(self, data):
        if self.state is not State.AWAITING_RESPONSE:
            return self.state

        try:
            record = self.receive(data)
        except ChallengeRequired as challenge:
            return self.retry(challenge.token)
        except QueryError as e:
            return self.fail(e)

        if record is not None:
            self.complete(record)
        return self.state

    def receive(self, data):
        if classify(data) is Decision.FRAGMENTED:
            fragment = parse_fragment(data)
            if self.reassembler.expired():
                raise QueryTimeout(f'split response {fragment.packet_id:#x} expired with {len(self.reassembler)} fragments')
            if not self.reassembler.belongs(fragment):
                self.log(f'{self.kind.value}: dropped stray fragment of {fragment.packet_id:#x} while assembling {self.reassembler.packet_id:#x}')
                return None
            data = self.reassembler.ingest(fragment)
            self.log(f'{self.kind.value}: fragment {fragment.index + 1}/{fragment.total} of {fragment.packet_id:#x}')
            if data is None:
                return None

        response = envelope(data)
        if response.kind is Kind.CHALLENGE:
            raise ChallengeRequired(response.value)
        if response.kind is Kind.UNRECOGNIZED:
            raise InvalidHeader(f'unhandled response type {response.value:#04x}')
        if response.kind is not EXPECTED[self.kind]:
            # a late answer to an earlier query on the same socket
            self.log(f'{self.kind.value}: ignored {response.kind.value} response')
            return None
        return response.value

    def retry(self, token):
        if self.retried:
            return self.fail(InvalidPacket(f'server sent another challenge {token.hex()} after the retry'))
        self.state = State.CHALLENGE_RECEIVED
        self.retried = True
        self.log(f'{self.kind.value}: retrying with challenge {token.hex()}')
        return self.send(token)

    def complete(self, record):
        self.rtt = (self.clock() - self.sent_at) * 1000
        self.record = record
        self.state = State.COMPLETED
        self.log(f'{self.kind.value}: completed in {self.rtt:.0f} ms')

    def fail(self, error):
        self.error = error
        self.state = State.FAILED
        self.reassembler.reset()
        self.log(f'{self.kind.value}: failed, {type(error).__name__}: {error}')
        return self.state

    def cancel(self):
        if self.finished:
            return
        self.reassembler.reset()
        self.state = State.CANCELLED
        self.log(f'{self.kind.value}: cancelled')

    def run(self):
        if self.state is State.SENT and self.sent_at is None:
            self.start()

        while not self.finished:
            remaining = self.deadline - self.clock()
            if remaining <= 0:
                self.fail(QueryTimeout(f'no complete response within {self.timeout} seconds'))
                break
            try:
                data = self.transport.recv(remaining)
            except TransportError as e:
                self.fail(e)
                break
            self.feed(data)

        return self.result()

    def result(self):
        return QueryResult(self.kind, self.state, self.record, self.rtt, self.error, self.retried)
