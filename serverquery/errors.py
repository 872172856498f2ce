class QueryError(Exception):
    pass


# socket failures, surfaced immediately
class TransportError(QueryError):
    pass


class QueryTimeout(TransportError):
    pass


# bad framing: short datagram, bad split header, inconsistent fragments
class InvalidPacket(QueryError):
    pass


# first 4 bytes are neither the single nor the split prefix
class InvalidHeader(QueryError):
    pass


# a recognized opcode whose body can not be read
class MalformedPayload(QueryError):
    pass


# raised internally when the server wants its token echoed back, never leaves the session
class ChallengeRequired(QueryError):
    def __init__(self, token):
        super().__init__(f'challenge {token.hex()}')
        self.token = token
