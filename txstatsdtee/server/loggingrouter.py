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

from txstatsdtee.server.router import Router


class LoggingRouter(Router):
    """
    This specialised C{Router} logs every datagram it takes in and every
    packet it sends out using the supplied logger (which should have a
    callable C{info} attribute.)
    """

    def __init__(self, links, queue, logger):
        super(LoggingRouter, self).__init__(links, queue)

        logger_info = getattr(logger, "info", None)
        if logger_info is None or not callable(logger_info):
            raise TypeError()
        self.logger = logger

    def process(self, datagram):
        self.logger.info("In: {datagram!r} ({size})",
                         datagram=datagram, size=len(datagram))
        return super(LoggingRouter, self).process(datagram)

    def send(self, link, message):
        self.logger.info("Out: {address} {message!r}",
                         address=link.destination.address, message=message)
        return super(LoggingRouter, self).send(link, message)
