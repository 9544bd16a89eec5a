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

import configparser
import getopt
import platform
import re
import sys
from collections import namedtuple

from twisted import copyright
from twisted.application.service import Service
from twisted.internet import defer, task
from twisted.logger import Logger
from twisted.python import usage, log

from txstatsdtee import version
from txstatsdtee.client import DestinationLink
from txstatsdtee.server.loggingrouter import LoggingRouter
from txstatsdtee.server.protocol import (
    DatagramQueue, ListenerPort, TeeServerProtocol)
from txstatsdtee.server.router import Destination, Router


def accumulateClassList(classObj, attr, listObj,
                        baseClass=None, excludeClass=None):
    """Accumulate all attributes of a given name in a class hierarchy
    into a single list.

    Assuming all class attributes of this name are lists.
    """
    for base in classObj.__bases__:
        accumulateClassList(base, attr, listObj, excludeClass=excludeClass)
    if excludeClass != classObj:
        if baseClass is None or baseClass in classObj.__bases__:
            listObj.extend(classObj.__dict__.get(attr, []))


class OptionsGlue(usage.Options):
    """Extends usage.Options to also read parameters from a config file."""

    optParameters = [
        ["config", "c", None, "Config file to use."]]

    def __init__(self):
        parameters = []
        accumulateClassList(self.__class__, 'optParameters',
                            parameters, excludeClass=OptionsGlue)
        for parameter in parameters:
            if parameter[0] == "config" or parameter[1] == "c":
                raise ValueError("the --config/-c parameter is reserved.")

        self.overridden_options = []

        super(OptionsGlue, self).__init__()

    def opt_config(self, config_path):
        self['config'] = config_path

    opt_c = opt_config

    def parseOptions(self, options=None):
        """Obtain overridden options."""

        if options is None:
            options = sys.argv[1:]
        try:
            opts, args = getopt.getopt(options,
                                       self.shortOpt, self.longOpt)
        except getopt.error as e:
            raise usage.UsageError(str(e))

        for opt, arg in opts:
            if opt[1] == '-':
                opt = opt[2:]
            else:
                opt = opt[1:]
            self.overridden_options.append(self.synonyms.get(opt, opt))

        super(OptionsGlue, self).parseOptions(options=options)

    def postOptions(self):
        """Read the configuration file if one is provided."""
        if self['config'] is not None:
            config_file = configparser.RawConfigParser()
            if not config_file.read(self['config']):
                raise usage.UsageError(
                    "cannot read config file %s" % (self['config'],))

            self.configure(config_file)

    def overridden_option(self, opt):
        """Return whether this option was overridden."""
        return opt in self.overridden_options

    def configure(self, config_file):
        """Read the configuration items, coercing types as required."""
        if config_file.has_section(self.config_section):
            for name, value in config_file.items(self.config_section):
                self._coerce_option(name, value)

        for section in sorted(config_file.sections()):
            if section.startswith("destination"):
                for name, value in config_file.items(section):
                    self._coerce_option(name, value)

    def _coerce_option(self, name, value):
        """Coerce a single option, checking for overriden options."""
        # Overridden options have precedence
        if not self.overridden_option(name):
            # Options appends '=' when gathering the parameters
            if (name + '=') in self.longOpt:
                # Coerce the type if required
                if name in self._dispatch:
                    if isinstance(self._dispatch[name], usage.CoerceParameter):
                        value = self._dispatch[name].coerce(value)
                    else:
                        self._dispatch[name](name, value)
                        return
                self[name] = value


class TeeOptions(OptionsGlue):
    """
    The set of configuration settings for txStatsDTee.
    """

    optParameters = [
        ["address", "a", ":8125",
         "The UDP address where we will listen.", str],
        ["destination-address", "d", None,
         "Destination as host:port:regex:replacement"
         " (may be given multiple times).", str],
        ["max-queue-size", "Q", DatagramQueue.LIMIT,
         "Maximum number of datagrams waiting to be routed.", int],
        ["dump-mode", "D", 0,
         "Log every datagram received and every packet sent.", int],
        ]

    def __init__(self):
        self.config_section = 'statsdtee'
        super(TeeOptions, self).__init__()
        self["destination-address"] = []

    def opt_destination_address(self, destination):
        self["destination-address"].append(destination)

    def opt_version(self):
        """Display version information and exit."""
        print(version_string())
        sys.exit(0)


def version_string():
    return "statsdtee v%s (built w/Python %s, Twisted %s)" % (
        version.txstatsdtee, platform.python_version(), copyright.version)


class TeeConfig(namedtuple("TeeConfig",
                           "address destinations queue_size dump_mode")):
    """Everything the service needs to know, fixed at startup."""

    __slots__ = ()


def parse_address(address):
    """Split C{host:port} (or C{[host]:port}) into a host and a port."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise usage.UsageError(
            "invalid address %r, expected host:port" % (address,))
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = usage.portCoerce(port)
    except ValueError as e:
        raise usage.UsageError("invalid address %r - %s" % (address, e))
    return host, port


def parse_destination(spec):
    """
    Build a C{Destination} out of C{host:port:regex:replacement}.

    Only the first three colons separate fields, so the replacement may
    contain colons while the regex may not.
    """
    parts = spec.split(":", 3)
    if len(parts) != 4:
        raise usage.UsageError(
            "invalid destination %r, expected host:port:regex:replacement" %
            (spec,))
    host, port, pattern, replacement = parts
    host, port = parse_address("%s:%s" % (host, port))
    try:
        pattern = re.compile(pattern.encode("utf-8"))
    except re.error as e:
        raise usage.UsageError(
            "invalid regex in destination %r - %s" % (spec, e))
    return Destination(host, port, pattern, replacement.encode("utf-8"))


def build_config(options):
    """Check the parsed C{options} and turn them into a C{TeeConfig}."""
    destinations = tuple(
        parse_destination(spec) for spec in options["destination-address"])
    if not destinations:
        raise usage.UsageError(
            "must specify at least one --destination-address")

    queue_size = options["max-queue-size"]
    if queue_size < 1:
        raise usage.UsageError("--max-queue-size must be at least 1")

    return TeeConfig(address=parse_address(options["address"]),
                     destinations=destinations,
                     queue_size=queue_size,
                     dump_mode=bool(options["dump-mode"]))


class TeeService(Service):
    """
    Listens for statsd datagrams and tees them to every destination.

    Starting the service connects every destination, in order, then binds
    the listening port and starts routing. The first fatal error (a
    destination that can't be connected or reconnected, or a port that
    can't be bound) fails C{finished}; whoever runs the service decides
    what to do about it.
    """

    name = "statsdtee"

    def __init__(self, config, reactor=None):
        if not config.destinations:
            raise ValueError("at least one destination is required")
        if reactor is None:
            from twisted.internet import reactor

        self.reactor = reactor
        self.config = config
        self.finished = defer.Deferred()
        self.ready = None
        self.listener = None

        self.queue = DatagramQueue(config.queue_size)
        self.links = tuple(
            DestinationLink(destination, errback=self.fatal, reactor=reactor)
            for destination in config.destinations)
        if config.dump_mode:
            self.router = LoggingRouter(
                self.links, self.queue,
                logger=Logger(namespace="txstatsdtee.dump"))
        else:
            self.router = Router(self.links, self.queue)
        self.protocol = TeeServerProtocol(self.queue)

    def startService(self):
        Service.startService(self)
        self.ready = self.start()
        self.ready.addErrback(self.fatal)

    @defer.inlineCallbacks
    def start(self):
        for link in self.links:
            yield link.connect()

        host, port = self.config.address
        listener = ListenerPort(port, self.protocol, interface=host,
                                reactor=self.reactor)
        listener.startListening()
        self.listener = listener
        address = listener.getHost()
        log.msg("listening on %s:%d" % (address.host, address.port))

        self.router.start()

    def stopService(self):
        Service.stopService(self)
        self.router.stop()

        stopping = []
        if self.listener is not None:
            stopping.append(self.listener.stopListening())
            self.listener = None
        for link in self.links:
            stopping.append(link.disconnect())
        return defer.gatherResults([d for d in stopping if d is not None])

    def fatal(self, failure):
        if failure.check(defer.CancelledError) and not self.running:
            # Stopped while still connecting.
            return
        log.msg("FATAL: %s" % (failure.getErrorMessage(),))
        if not self.finished.called:
            self.finished.errback(failure)


def createService(options, reactor=None):
    """Create a txStatsDTee service."""
    return TeeService(build_config(options), reactor=reactor)


@defer.inlineCallbacks
def main(reactor, *argv):
    options = TeeOptions()
    try:
        options.parseOptions(list(argv))
        service = createService(options, reactor)
    except usage.UsageError as e:
        raise SystemExit("%s\nstatsdtee: %s" % (options, e))

    log.startLogging(sys.stderr)
    reactor.addSystemEventTrigger("before", "shutdown", service.stopService)
    service.startService()
    yield service.finished


def run():
    task.react(main, sys.argv[1:])
