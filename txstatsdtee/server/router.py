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

"""
Fans messages out to every destination, rewriting keys on the way.

Each destination carries a pattern and a replacement template. For every
record of a datagram the key is rewritten once per destination, like
re.sub, and the packet C{key:body} is handed to that destination's link.
Destinations are visited in the order they were configured.

Templates reference groups of the pattern with a dollar sign:
    $1 ${1}: group number one
    $name ${name}: the group called name
    $$: a literal dollar sign
A reference takes the longest run of letters, digits and underscores, so
$1x is the group called "1x"; write ${1}x instead. Groups that don't exist
or didn't take part in the match expand to nothing.
"""
import functools
import re
from collections import namedtuple

from twisted.internet import defer
from twisted.python import log

from txstatsdtee.server.processor import parse_message


TEMPLATE_REFERENCE = re.compile(br"\$(?:(\$)|\{(\w+)\}|(\w+))")


@functools.lru_cache(maxsize=None)
def compile_template(replacement):
    """
    Split C{replacement} into a tuple of literal C{bytes} and group
    references (C{int} for numbered groups, C{str} for named ones).
    """
    parts = []
    position = 0
    for match in TEMPLATE_REFERENCE.finditer(replacement):
        literal = replacement[position:match.start()]
        if literal:
            parts.append(literal)
        position = match.end()

        dollar, braced, bare = match.groups()
        if dollar:
            parts.append(b"$")
            continue
        name = (braced or bare).decode("ascii")
        if name.isdigit():
            parts.append(int(name))
        else:
            parts.append(name)

    if position < len(replacement):
        parts.append(replacement[position:])
    return tuple(parts)


def expand_template(match, parts):
    """Expand compiled template C{parts} against a regex C{match}."""
    expanded = []
    for part in parts:
        if isinstance(part, bytes):
            expanded.append(part)
            continue

        if isinstance(part, int):
            index = part
        else:
            index = match.re.groupindex.get(part)
        if index is None or index > match.re.groups:
            continue
        group = match.group(index)
        if group is not None:
            expanded.append(group)
    return b"".join(expanded)


def rewrite_key(pattern, replacement, key):
    """
    Replace all non-overlapping matches of C{pattern} in C{key} with the
    expanded C{replacement}. C{key} comes back untouched when nothing
    matches.
    """
    parts = compile_template(replacement)
    return pattern.sub(lambda match: expand_template(match, parts), key)


class Destination(namedtuple("Destination",
                             "host port pattern replacement")):
    """Where packets go, and how their keys get renamed on the way."""

    __slots__ = ()

    @property
    def address(self):
        return "%s:%d" % (self.host, self.port)

    def rewrite(self, key):
        return rewrite_key(self.pattern, self.replacement, key)


class Router(object):

    def __init__(self, links, queue):
        """Route datagrams taken from C{queue} to every one of C{links}.

        Each link carries the C{Destination} it delivers to.
        """
        self.links = tuple(links)
        self.queue = queue
        self.running = False
        self.done = None
        self._pending = None

    def start(self):
        self.running = True
        self.done = self.consume()
        return self.done

    def stop(self):
        self.running = False
        if self._pending is not None:
            self._pending.cancel()

    @defer.inlineCallbacks
    def consume(self):
        """Take datagrams off the queue, one at a time, until stopped."""
        while self.running:
            self._pending = self.queue.get()
            try:
                datagram = yield self._pending
            except defer.CancelledError:
                break
            finally:
                self._pending = None
            try:
                self.process(datagram)
            except Exception:
                log.err(None, "Unhandled error routing %r" % (datagram,))

    def process(self, datagram):
        for record in parse_message(datagram):
            self.process_record(record)

    def process_record(self, record):
        for link in self.links:
            try:
                key = link.destination.rewrite(record.key)
                self.send(link, self.rebuild_message(key, record.body))
            except Exception:
                log.err(None, "Unhandled error sending to %s" %
                        (link.destination.address,))

    def send(self, link, message):
        link.send(message)

    def rebuild_message(self, key, body):
        return key + b":" + body
