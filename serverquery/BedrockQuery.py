# more info: https://wiki.vg/Raknet_Protocol#Unconnected_Pong

from .packets import RequestKind
from .session import QuerySession
from .transport import UdpTransport


class BedrockQuery(object):
    def __init__(self, address, port=19132, timeout=5.0, log=None):
        self.address, self.port, self.timeout, self.log = address, port, timeout, log
        self.transport = UdpTransport(address, port, timeout)
        self.last_result = None

    def getInfo(self):
        session = QuerySession(self.transport, RequestKind.BEDROCK_PING, self.timeout, self.log)
        try:
            self.last_result = session.run()
        finally:
            session.cancel()
        return self.last_result.record if self.last_result.ok else False

    def disconnect(self):
        self.transport.close()


if __name__ == '__main__':
    bedrockQuery = BedrockQuery('play.lbsg.net', 19132, log=print)
    print(bedrockQuery.getInfo())
    bedrockQuery.disconnect()
