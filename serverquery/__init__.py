from .BedrockQuery import BedrockQuery
from .SourceQuery import SourceQuery
from .errors import (ChallengeRequired, InvalidHeader, InvalidPacket, MalformedPayload, QueryError, QueryTimeout,
                     TransportError)
from .packets import RequestKind, build
from .session import QueryResult, QuerySession, State

__all__ = [
    'BedrockQuery', 'SourceQuery',
    'QueryError', 'TransportError', 'QueryTimeout', 'InvalidPacket', 'InvalidHeader', 'MalformedPayload',
    'ChallengeRequired',
    'RequestKind', 'build',
    'QueryResult', 'QuerySession', 'State',
]
