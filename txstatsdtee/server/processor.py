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

import re
from collections import namedtuple


PACKET = re.compile(br"^([^:]+):(.*)$")


class Record(namedtuple("Record", "key body")):
    """A single C{key:body} line taken from a datagram."""

    __slots__ = ()


def parse_message(data):
    """
    Split a datagram into its C{Record}s.

    Lines are separated by newlines. Empty lines and lines that don't have
    a key followed by a colon are dropped without complaint. Everything
    after the first colon is the body, which may be empty or contain more
    colons.
    """
    records = []
    for line in data.split(b"\n"):
        if not line:
            continue

        match = PACKET.match(line)
        if match is None:
            continue

        records.append(Record(*match.groups()))
    return records
