# -*- coding: utf-8 -*-

# more info: https://developer.valvesoftware.com/wiki/Server_queries

from .packets import RequestKind
from .session import QuerySession
from .transport import UdpTransport


class SourceQuery(object):
    def __init__(self, address, port=27015, timeout=5.0, log=None):
        self.address, self.port, self.timeout, self.log = address, port, timeout, log
        self.transport = UdpTransport(address, port, timeout)
        self.last_result = None

    def getInfo(self):
        return self.query(RequestKind.INFO)

    def getPlayers(self):
        return self.query(RequestKind.PLAYERS)

    def getRules(self):
        return self.query(RequestKind.RULES)

    def query(self, kind):
        """Run one session, returns the decoded record or False. The full outcome stays in last_result."""
        session = QuerySession(self.transport, kind, self.timeout, self.log)
        try:
            self.last_result = session.run()
        finally:
            session.cancel()
        return self.last_result.record if self.last_result.ok else False

    def disconnect(self):
        self.transport.close()


# Debug
if __name__ == '__main__':
    sourceQuery = SourceQuery('168.119.39.60', 27013, log=print)
    print(sourceQuery.getInfo())
    print(sourceQuery.getPlayers())
    print(sourceQuery.getRules())
    sourceQuery.disconnect()
