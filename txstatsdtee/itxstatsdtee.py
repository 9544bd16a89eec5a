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

from zope.interface import Interface, Attribute


class IDestinationLink(Interface):
    destination = Attribute("""
        @type destination: C{txstatsdtee.server.router.Destination}
        @ivar destination: Where this link delivers packets, and how keys
        are rewritten for it.
        """)

    def connect():
        """
        Open the outbound socket towards the destination.

        @return: A C{Deferred} that fires once the socket is connected, or
            fails with C{DestinationUnreachable}.
        """

    def send(data):
        """
        Send one packet to the destination.

        Write failures are handled by the link itself, by reconnecting
        once. Nothing is raised to the caller.

        @type data: C{bytes}
        @param data: The packet, as C{key:body}.
        """

    def disconnect():
        """
        Close the outbound socket.
        """
