import socket

from .errors import QueryTimeout, TransportError

MAX_DATAGRAM = 4096


class UdpTransport(object):
    """Connected UDP socket; every receive waits at most `timeout` seconds."""

    def __init__(self, address, port, timeout=5.0):
        self.address, self.port, self.timeout = address, port, timeout
        self.sock = False

    def connect(self):
        self.disconnect()
        try:
            ip = socket.gethostbyname(self.address)
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            self.sock.settimeout(self.timeout)
            self.sock.connect((ip, self.port))
        except OSError as e:
            self.disconnect()
            raise TransportError(f'unable to reach {self.address}:{self.port}: {e}')

    def disconnect(self):
        if self.sock:
            self.sock.close()
            self.sock = False

    def send(self, data):
        if not self.sock:
            self.connect()
        try:
            self.sock.send(data)
        except OSError as e:
            raise TransportError(f'send to {self.address}:{self.port} failed: {e}')

    def recv(self, timeout=None):
        if not self.sock:
            raise TransportError('receive on a closed socket')
        try:
            self.sock.settimeout(self.timeout if timeout is None else timeout)
            return self.sock.recv(MAX_DATAGRAM)
        except socket.timeout:
            raise QueryTimeout(f'{self.address}:{self.port} did not answer in time')
        except OSError as e:
            raise TransportError(f'receive from {self.address}:{self.port} failed: {e}')

    def close(self):
        self.disconnect()
