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

from zope.interface import implementer

from twisted.internet import defer, error
from twisted.internet.abstract import isIPv6Address
from twisted.internet.defer import inlineCallbacks
from twisted.internet.protocol import DatagramProtocol
from twisted.python import log

from txstatsdtee.itxstatsdtee import IDestinationLink


# Seconds allowed for resolving a destination when (re)connecting.
CONNECT_TIMEOUT = 1


class DestinationUnreachable(Exception):
    """A connection to a destination couldn't be established."""

    def __init__(self, address, reason):
        super(DestinationUnreachable, self).__init__(address, reason)
        self.address = address
        self.reason = reason

    def __str__(self):
        return "UDP connection to %s failed - %s" % (self.address,
                                                     self.reason)


class DestinationProtocol(DatagramProtocol):
    """The protocol behind a connected outbound UDP socket."""

    def __init__(self, link):
        self.link = link

    def datagramReceived(self, data, addr):
        """Destinations aren't expected to answer; ignore them."""

    def connectionRefused(self):
        """
        The kernel reported an ICMP port unreachable for an earlier write,
        which counts as a failed write.
        """
        if self.link.protocol is self:
            self.link.connectionFailed("connection refused")


@implementer(IDestinationLink)
class DestinationLink(object):

    def __init__(self, destination, timeout=CONNECT_TIMEOUT, errback=None,
                 reactor=None):
        """Build a link that delivers packets to C{destination} over UDP.

        Call C{connect()} before sending anything.

        @param destination: The C{Destination} this link is bound to.
        @param timeout: Seconds allowed to resolve the destination host.
        @param errback: Invoked with the failure when reconnecting after a
            write error doesn't work out.
        @param reactor: The reactor to use, the global one by default.
        """
        if reactor is None:
            from twisted.internet import reactor

        self.reactor = reactor
        self.destination = destination
        self.timeout = timeout
        if errback is None:
            errback = log.err
        self.errback = errback

        self.protocol = None
        self.transport = None
        self._resolving = None

    def __str__(self):
        return self.destination.address

    @inlineCallbacks
    def connect(self):
        """Resolve the destination and connect a fresh UDP socket to it.

        Resolution that takes longer than C{timeout} seconds fails with
        L{DestinationUnreachable}. A C{disconnect()} while the host is
        still being resolved cancels the attempt.
        """
        host, port = self.destination.host, self.destination.port
        if isIPv6Address(host):
            ip = host
        else:
            self._resolving = d = self.reactor.resolve(host)
            d.addTimeout(self.timeout, self.reactor)
            try:
                ip = yield d
            except (OSError, error.TimeoutError, defer.TimeoutError) as e:
                raise DestinationUnreachable(self.destination.address, e)
            finally:
                self._resolving = None

        interface = "::" if isIPv6Address(ip) else ""
        protocol = DestinationProtocol(self)
        try:
            transport = self.reactor.listenUDP(0, protocol,
                                               interface=interface)
        except error.CannotListenError as e:
            raise DestinationUnreachable(self.destination.address, e)
        try:
            transport.connect(ip, port)
        except (OSError, ValueError) as e:
            transport.stopListening()
            raise DestinationUnreachable(self.destination.address, e)

        self.protocol = protocol
        self.transport = transport
        log.msg("Connected to %s (%s)" % (self, ip))

    def disconnect(self):
        """Close the current socket, if any, and abandon a pending connect.

        @return: Whatever the transport returns from C{stopListening}.
        """
        if self._resolving is not None:
            self._resolving.cancel()
        transport, self.transport, self.protocol = self.transport, None, None
        if transport is not None:
            return transport.stopListening()

    def reconnect(self):
        """Swap the current socket for a new one.

        The outcome is reported to C{errback} only when it fails, and not
        when the link was disconnected in the meantime.
        """
        self.disconnect()
        d = self.connect()
        d.addErrback(self.reconnectFailed)
        return d

    def reconnectFailed(self, failure):
        if not failure.check(defer.CancelledError):
            return self.errback(failure)

    def connectionFailed(self, reason):
        log.msg("ERROR: writing to UDP socket %s - %s" % (self, reason))
        return self.reconnect()

    def send(self, data):
        """Write C{data} to the destination.

        A packet that can't be written is lost; the link reconnects once
        and carries on with the next one. Packets sent while a reconnect
        is still resolving the host are dropped.
        """
        if self.transport is None:
            return
        try:
            self.transport.write(data)
        except (OSError, error.MessageLengthError) as e:
            self.connectionFailed(e)
