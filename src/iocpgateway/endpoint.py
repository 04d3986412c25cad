"""
Endpoints are the named channels the gateway routes between: one SerialEndpoint per field
device and a single CentralEndpoint for the upstream server.

An endpoint reads raw bytes from its connector, frames them into lines, decodes each line
and hands the resulting message to the distributor. In the other direction it encodes
actions and sends them through its connector.
"""
import logging
from abc import abstractmethod

from iocpgateway.connector.base import Connector, ConnectorConnectedEvent, ConnectorError
from iocpgateway.protocol.framing import LineFramer
from iocpgateway.protocol.iocp import KEEPALIVE, LINE_TERMINATOR, Message, MessageAction, \
    MessageActionVisitor, Origin, decode_action, encode_line, update

logger = logging.getLogger(__name__)


class Endpoint:
    """
    A named channel with a transmit operation and a stream of received bytes.
    :param label    the name of this endpoint, which is also its identity
    :param connector    the transport to the device or server
    :param distributor  receives the messages decoded from this endpoint
    """

    def __init__(self, label, connector: Connector, distributor):
        self.label = label
        self.connector = connector
        self.distributor = distributor
        self.framer = LineFramer()
        connector.events.add(self._connector_events)

    @property
    @abstractmethod
    def origin(self) -> Origin:
        raise NotImplementedError

    def _connector_events(self, event):
        if isinstance(event, ConnectorConnectedEvent):
            self.framer.clear()
            self._on_connected()

    def _on_connected(self):
        """ template method called when the connector has just connected. """

    def send(self, action: MessageAction) -> bool:
        """
        Encodes the action and sends it as one line. Delivery is attempted once, immediately.
        :return: True if the line was written, False if the transport couldn't take it.
        """
        return self._transmit(encode_line(action), action)

    def _transmit(self, data, what):
        try:
            self.connector.send(data)
            return True
        except ConnectorError as e:
            logger.warning("unable to send %s to %s: %s" % (what, self, e))
            return False

    def pump(self):
        """ reads whatever bytes have arrived on the connector and processes any complete lines. """
        data = self.connector.conduit.read_available()
        if data:
            self.receive(data)

    def receive(self, data: bytes):
        self.framer.append(data)
        for line in self.framer.lines():
            self.process_line(line)

    @abstractmethod
    def process_line(self, line):
        """ handles one line received from the connector. """
        raise NotImplementedError

    def _message(self, line):
        return Message(decode_action(line), self.origin)

    def __str__(self):
        return "%s '%s'" % (self.__class__.__name__, self.label)


class _FromDevice(MessageActionVisitor):
    """ what a serial endpoint does with the actions its device sends. """

    def __init__(self, endpoint: 'SerialEndpoint', message: Message):
        self.endpoint = endpoint
        self.message = message

    def registration(self, action):
        self.endpoint.register_positions(action.names)
        self.endpoint.distributor.enqueue_message(self.message)

    def update(self, action):
        self.endpoint.distributor.enqueue_message(self.message)

    def keepalive(self, action):
        logger.debug("keep-alive from %s" % self.endpoint)

    def exit(self, action):
        logger.debug("exit from %s" % self.endpoint)

    def invalid(self, action):
        logger.debug("invalid message from %s" % self.endpoint)

    def unknown(self, action):
        logger.debug("unknown message from %s" % self.endpoint)


class _ToDevice(MessageActionVisitor):
    """ decides what, if anything, is sent to a device for an action routed to it. """

    def __init__(self, endpoint: 'SerialEndpoint'):
        self.endpoint = endpoint

    def update(self, action):
        registered = self.endpoint.registered_positions
        positions = [p for p in action.positions if p.name in registered]
        if positions:
            return self.endpoint.send(update(positions))

    def keepalive(self, action):
        return self.endpoint.send(action)


class SerialEndpoint(Endpoint):
    """
    The endpoint for one serial device. The device registers the position names it is
    interested in, and only updates to those positions are passed on to it.
    Registered names are only ever added.

    Two serial endpoints are equal when their labels are equal.
    """

    def __init__(self, label, connector: Connector, distributor, lock=None):
        """
        :param lock guards the registered positions. Defaults to the distributor's lock.
        """
        super().__init__(label, connector, distributor)
        self._registered = set()
        self._lock = lock if lock is not None else distributor.lock

    @property
    def origin(self):
        return Origin.serial(self.label)

    @property
    def registered_positions(self) -> frozenset:
        with self._lock:
            return frozenset(self._registered)

    def register_positions(self, names):
        with self._lock:
            self._registered.update(names)

    def process_line(self, line):
        message = self._message(line)
        message.action.apply(_FromDevice(self, message))

    def handle_incoming_action(self, action: MessageAction):
        """
        Passes an action routed from the distributor on to the device.
        Updates are cut down to the registered positions and dropped when none remain.
        Keep-alives always go through. Nothing else is sent to a device.
        :return: the result of sending, or None when nothing was sent
        """
        return action.apply(_ToDevice(self))

    def _on_connected(self):
        logger.info("%s connected on %s" % (self, self.connector.endpoint))
        self.send(KEEPALIVE)

    def __eq__(self, other):
        return isinstance(other, SerialEndpoint) and other.label == self.label

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(self.label)


class CentralEndpoint(Endpoint):
    """
    The endpoint for the upstream server. Everything received from the server is handed to the
    distributor. When the connection opens, an empty line is sent to wake the server up and the
    distributor is told so that it can greet the devices.
    """

    def __init__(self, connector: Connector, distributor, label='central'):
        super().__init__(label, connector, distributor)

    @property
    def origin(self):
        return Origin.central()

    def process_line(self, line):
        self.distributor.enqueue_message(self._message(line))

    def _on_connected(self):
        logger.info("connected to server %s" % self.connector.endpoint)
        self._transmit(LINE_TERMINATOR.encode('ascii'), "wake-up line")
        self.distributor.central_connected()
