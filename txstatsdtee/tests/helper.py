# Copyright (C) 2011-2012 Canonical Services Ltd
#
# Permission is hereby granted, free of charge, to any person obtaining
# a copy of this software and associated documentation files (the
# "Software"), to deal in the Software without restriction, including
# without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to
# permit persons to whom the Software is furnished to do so, subject to
# the following conditions:
#
# The above copyright notice and this permission notice shall be
# included in all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT.
# IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY
# CLAIM, DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT,
# TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION WITH THE
# SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.

from twisted.internet import defer, error, task
from twisted.internet.protocol import DatagramProtocol


class FakePort(object):
    """A connected UDP port that records what's written to it."""

    def __init__(self, protocol, interface):
        self.protocol = protocol
        self.interface = interface
        self.connected_to = None
        self.written = []
        self.stopped = False
        self.write_error = None
        self.connect_error = None

    def connect(self, host, port):
        if self.connect_error is not None:
            raise self.connect_error
        self.connected_to = (host, port)

    def write(self, data):
        if self.write_error is not None:
            raise self.write_error
        self.written.append(data)

    def stopListening(self):
        self.stopped = True


class FakeReactor(task.Clock):
    """
    Resolves every host to 10.0.0.1 and opens L{FakePort}s. Hosts in
    C{unresolvable} fail to resolve, and those in C{hanging} never answer.
    """

    def __init__(self):
        task.Clock.__init__(self)
        self.ports = []
        self.resolved = []
        self.unresolvable = set()
        self.hanging = set()
        self.connect_error = None

    def resolve(self, name, timeout=None):
        self.resolved.append(name)
        if name in self.unresolvable:
            return defer.fail(error.DNSLookupError(name))
        if name in self.hanging:
            return defer.Deferred()
        return defer.succeed("10.0.0.1")

    def listenUDP(self, port, protocol, interface="", maxPacketSize=8192):
        udp_port = FakePort(protocol, interface)
        udp_port.connect_error = self.connect_error
        self.ports.append(udp_port)
        return udp_port


class Collect(DatagramProtocol):
    """Fires C{received} with the first datagram that arrives."""

    def __init__(self):
        self.received = defer.Deferred()

    def datagramReceived(self, data, addr):
        if not self.received.called:
            self.received.callback(data)
