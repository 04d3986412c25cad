"""
Routes messages between the serial endpoints and the central server.

Routing rules:

- from a device: everything is passed to the server. Updates are also passed to every
  other device, but never back to the device that sent them.
- from the server: updates go to every device (each device keeps only the positions it
  registered), keep-alives are answered back to the server, everything else is ignored.

Messages from a serial endpoint that isn't registered with the distributor are dropped.
"""
import logging
import threading

from iocpgateway.endpoint import CentralEndpoint, Endpoint, SerialEndpoint
from iocpgateway.protocol.iocp import KEEPALIVE, Actions, Message, MessageActionVisitor, Origin

logger = logging.getLogger(__name__)


class Delivery:
    """ one pending send of an action to a target endpoint. """

    def __init__(self, target: Endpoint, send, action):
        self.target = target
        self.send = send
        self.action = action

    def __call__(self):
        return self.send(self.action)

    def __str__(self):
        return "%s to %s" % (self.action, self.target)


class _FromCentral(MessageActionVisitor):
    """ routes the actions sent by the server. """

    def __init__(self, distributor: 'MessageDistributor'):
        self.distributor = distributor

    def update(self, action):
        return self.distributor._to_serial_endpoints(action)

    def keepalive(self, action):
        return self.distributor._to_central(action)


class MessageDistributor:
    """
    Keeps the live set of endpoints and routes each message enqueued to the endpoints that
    should receive it.

    All state is guarded by one lock, which the serial endpoints also use for their registered
    positions. Targets are chosen while holding the lock, and the sends happen after it is released.
    Each send is attempted once; a failed send is logged and doesn't affect the other targets.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._serial_endpoints = {}     # label -> SerialEndpoint
        self._central = None

    def register_endpoint(self, endpoint: Endpoint):
        """
        Adds a serial endpoint, replacing any previous endpoint with the same label,
        or installs the central endpoint, replacing the previous one.
        """
        with self.lock:
            if isinstance(endpoint, SerialEndpoint):
                self._serial_endpoints[endpoint.label] = endpoint
            elif isinstance(endpoint, CentralEndpoint):
                self._central = endpoint
            else:
                raise TypeError("cannot register %r" % endpoint)
        logger.debug("registered %s" % endpoint)

    def unregister_endpoint(self, endpoint: Endpoint):
        """ removes an endpoint. Messages from a removed serial endpoint are no longer routed. """
        with self.lock:
            if isinstance(endpoint, SerialEndpoint):
                self._serial_endpoints.pop(endpoint.label, None)
            elif endpoint is self._central:
                self._central = None

    @property
    def serial_endpoints(self):
        with self.lock:
            return tuple(self._serial_endpoints.values())

    @property
    def central(self) -> CentralEndpoint:
        return self._central

    def enqueue_message(self, message: Message) -> int:
        """
        Routes a message to its targets.
        :return: the number of targets the message was sent to
        """
        with self.lock:
            if not self._valid_origin(message.origin):
                logger.warning("dropping %s: origin is not registered" % message)
                return 0
            if message.origin.is_central:
                deliveries = message.action.apply(_FromCentral(self)) or []
            else:
                deliveries = self._from_serial(message)
        return self._deliver(deliveries)

    def central_connected(self) -> int:
        """ greets every device with a keep-alive when the server connection opens. """
        with self.lock:
            deliveries = self._to_serial_endpoints(KEEPALIVE)
        return self._deliver(deliveries)

    def _valid_origin(self, origin: Origin):
        if origin.is_central:
            return self._central is not None
        return origin.label in self._serial_endpoints

    def _from_serial(self, message: Message):
        action = message.action
        deliveries = self._to_central(action)
        if action.kind == Actions.update:
            deliveries += self._to_serial_endpoints(action, except_label=message.origin.label)
        return deliveries

    def _to_central(self, action):
        central = self._central
        if central is None:
            return []
        if not action.transmittable:
            logger.debug("not forwarding %s to %s" % (action, central))
            return []
        return [Delivery(central, central.send, action)]

    def _to_serial_endpoints(self, action, except_label=None):
        return [Delivery(endpoint, endpoint.handle_incoming_action, action)
                for label, endpoint in self._serial_endpoints.items() if label != except_label]

    def _deliver(self, deliveries) -> int:
        sent = 0
        for delivery in deliveries:
            try:
                result = delivery()
            except Exception as e:
                logger.exception("error sending %s: %s" % (delivery, e))
                continue
            if result:
                sent += 1
                logger.debug("sent %s" % delivery)
            elif result is not None:
                logger.debug("failed sending %s" % delivery)
        return sent
