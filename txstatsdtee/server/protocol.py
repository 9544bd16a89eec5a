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

import logging
import socket
import time

from zope.interface import implementer

from twisted.internet import defer, interfaces, udp
from twisted.internet.protocol import DatagramProtocol
from twisted.python import log


# Largest datagram read from the socket; anything longer gets truncated.
MAX_PACKET_SIZE = 512

# Kernel receive buffer requested for the listening socket.
RECEIVE_BUFFER_SIZE = 1024 * 1024


class DatagramQueue(object):
    """Holds received datagrams until the router gets to them.

    The queue is bounded. Once it is full its producer is paused, and it's
    resumed as soon as a datagram is taken out again.
    """

    LIMIT = 1000

    def __init__(self, limit=None):
        if limit is None:
            limit = self.LIMIT
        self.limit = limit
        self.producer = None
        self.paused = False
        self._queue = defer.DeferredQueue(size=limit, backlog=1)

    def __len__(self):
        return len(self._queue.pending)

    def registerProducer(self, producer):
        self.producer = producer

    def unregisterProducer(self):
        self.producer = None

    def put(self, datagram):
        """Queue the given datagram.

        @raise twisted.internet.defer.QueueOverflow: If the queue is full.
        """
        self._queue.put(datagram)
        if len(self) >= self.limit and not self.paused:
            self.paused = True
            if self.producer is not None:
                self.producer.pauseProducing()

    def get(self):
        """Return a C{Deferred} firing with the oldest datagram."""
        d = self._queue.get()
        if self.paused and len(self) < self.limit:
            self.paused = False
            if self.producer is not None:
                self.producer.resumeProducing()
        return d


@implementer(interfaces.IPushProducer)
class TeeServerProtocol(DatagramProtocol):
    """Receives statsd datagrams and queues them for routing.

    The protocol is the producer of its queue: reading from the socket
    stops while the queue is full.
    """

    def __init__(self, queue):
        self.queue = queue
        self.last_paused = None
        self.dropped = 0

    def startProtocol(self):
        self.queue.registerProducer(self)

    def stopProtocol(self):
        self.queue.unregisterProducer()

    def datagramReceived(self, data, addr):
        try:
            self.queue.put(data)
        except defer.QueueOverflow:
            # Read in the same burst that filled the queue.
            self.dropped += 1

    def pauseProducing(self):
        """Stop reading from the socket, since the queue is full."""
        self.last_paused = time.time()
        if self.transport is not None:
            self.transport.stopReading()
        log.msg("Paused reading UDP packets, queue is full",
                logLevel=logging.WARNING)

    stopProducing = pauseProducing

    def resumeProducing(self):
        """There is room in the queue again, go back to reading."""
        if self.transport is not None:
            self.transport.startReading()
        if self.last_paused is not None:
            log.msg("Resumed reading UDP packets. "
                    "Dropped %s packets during %.3f seconds" %
                    (self.dropped, time.time() - self.last_paused))
        self.dropped = 0
        self.last_paused = None


class ListenerPort(udp.Port):
    """
    The inbound UDP port.

    It reads at most C{MAX_PACKET_SIZE} bytes per datagram, asks for a large
    kernel receive buffer and survives read errors.
    """

    def __init__(self, port, proto, interface="",
                 maxPacketSize=MAX_PACKET_SIZE,
                 receiveBufferSize=RECEIVE_BUFFER_SIZE, reactor=None):
        udp.Port.__init__(self, port, proto, interface=interface,
                          maxPacketSize=maxPacketSize, reactor=reactor)
        self.receiveBufferSize = receiveBufferSize

    def createInternetSocket(self):
        skt = udp.Port.createInternetSocket(self)
        skt.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF,
                       self.receiveBufferSize)
        return skt

    def doRead(self):
        try:
            return udp.Port.doRead(self)
        except OSError as e:
            log.msg("ERROR: reading UDP packet - %s" % (e,))
