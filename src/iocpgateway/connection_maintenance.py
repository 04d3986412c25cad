"""
Keeps endpoint connections open. Each endpoint gets a thread that opens its connector when the
retry period allows, reads from it while it stays open, and starts over when it drops.
"""
import logging
import time

from iocpgateway.connector.base import Connector, ConnectorError
from iocpgateway.support.async_loop import AsyncLoop
from iocpgateway.support.events import QueuedEventSource
from iocpgateway.support.retry_strategy import PeriodRetryStrategy, RetryStrategy

logger = logging.getLogger(__name__)


class MaintainedConnection:
    """
    A connector that should stay connected, and the endpoint it belongs to.

    :param: resource    the endpoint; handed to the connected loop and named in the log
    :param: connector   opened whenever it is closed, available and the retry strategy says so
    :param: retry_strategy    spaces out the connection attempts
    :param: events      receives the connector's connected and disconnected events via fire()
    """
    def __init__(self, resource, connector: Connector, retry_strategy: RetryStrategy, events, log=logger):
        self.resource = resource
        self.connector = connector
        self.retry_strategy = retry_strategy
        self.events = events
        self.logger = log
        self.loop = None
        connector.events.add(self._connector_events)

    def _connector_events(self, event):
        self.events.fire(event)

    def _open(self):
        """
        connects if the connector is closed and available. A failure to connect is logged.
        :return: True if a connection was attempted
        """
        connector = self.connector
        attempt = not connector.connected and connector.available
        if attempt:
            try:
                connector.connect()
                self.logger.info("connected: %s" % self.resource)
            except ConnectorError as e:
                self.logger.warning("unable to connect %s: %s" % (self.resource, e))
        return attempt

    def _close(self):
        """
        disconnects, releasing the conduit even when the connection has already dropped.
        :return: True if the connector was still connected
        """
        connected = self.connector.connected
        self.connector.disconnect()
        if connected:
            self.logger.info("disconnected: %s" % self.resource)
        return connected

    def maintain(self, current_time=None):
        """
        tries to connect when the retry strategy allows.
        :param current_time: passed to the retry strategy
        :return: True if the retry strategy allowed an attempt
        """
        due = self.retry_strategy(current_time) <= 0
        if due:
            self._open()
        return due


class MaintainedConnectionLoop(AsyncLoop):
    """
    runs a maintained connection on its own thread, named after the endpoint.

    :param maintained_connection    the connection to keep open
    :param loop called with the maintained connection, over and over, while it is connected
    """

    def __init__(self, maintained_connection, loop=None):
        super().__init__(name=str(maintained_connection.resource))
        self.maintained_connection = maintained_connection
        self._loop = loop

    def loop(self):
        """
        one pass: connect if due, run the connected loop until the connection drops, then wait out
        what is left of the retry period. A connected loop that raises closes the connection.
        """
        mc = self.maintained_connection
        try:
            mc.maintain()
            while self.running() and mc.connector.connected:
                completed = False
                try:
                    time.sleep(0)
                    self._connected_loop()
                    completed = True
                finally:
                    if not completed:
                        mc._close()
            if not mc.connector.connected:
                # the peer went away; release the conduit so the next attempt starts clean
                mc._close()
        finally:
            self.stop_event.wait(max(0, mc.retry_strategy(dry_run=True)))

    def _connected_loop(self):
        if self._loop:
            self._loop(self.maintained_connection)

    def shutdown(self):
        self.maintained_connection._close()


class ConnectionManager:
    """
    Maintains one connection per endpoint, each on its own thread.

    The connectors' events are queued as they happen and delivered to the handlers of
    ``events`` on whichever thread calls update().

    :param connected_loop  called with the MaintainedConnection while it is connected
    :param retry_period    seconds between connection attempts, unless a connection overrides it
    """
    def __init__(self, connected_loop=None, retry_period=5):
        self.retry_period = retry_period
        self.events = QueuedEventSource()
        self._connected_loop = connected_loop
        self._connections = {}      # resource key -> MaintainedConnection

    def available(self, resource_key, resource, connector: Connector, retry_period=None):
        """
        Starts maintaining the connector for the resource. Calling again with the same connector
        does nothing; a different connector replaces the one maintained before.
        :return: the MaintainedConnection
        """
        current = self._connections.get(resource_key)
        if current is not None:
            if current.connector is connector:
                return current
            self.unavailable(resource_key)
        period = self.retry_period if retry_period is None else retry_period
        mc = self._new_maintained_connection(resource, connector, period, self.events)
        self._connections[resource_key] = mc
        mc.loop.start()
        return mc

    def unavailable(self, resource_key):
        """ stops the thread for the resource, which closes its connection. """
        mc = self._connections.pop(resource_key, None)
        if mc is not None:
            mc.loop.stop()
            mc.loop = None
            mc.connector.events.remove(mc._connector_events)

    def _new_maintained_connection(self, resource, connector, retry_period, events):
        mc = MaintainedConnection(resource, connector, PeriodRetryStrategy(retry_period), events)
        mc.loop = MaintainedConnectionLoop(mc, self._connected_loop)
        return mc

    @property
    def connections(self):
        """ a copy of the resource key to MaintainedConnection mapping, connected or not. """
        return dict(self._connections)

    def stop(self):
        for resource_key in list(self._connections):
            self.unavailable(resource_key)

    def update(self):
        """ delivers the queued connector events. Returns how many were delivered. """
        return self.events.publish()
