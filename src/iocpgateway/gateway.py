import logging
import threading

from iocpgateway.conduit.serial_conduit import serial_for_settings
from iocpgateway.config.gateway import EndpointConfig, GatewayConfig
from iocpgateway.connection_maintenance import ConnectionManager, MaintainedConnection
from iocpgateway.connector.base import ConnectorConnectedEvent, ConnectorDisconnectedEvent
from iocpgateway.connector.serialconn import SerialConnector
from iocpgateway.connector.socketconn import SocketConnector
from iocpgateway.distributor import MessageDistributor
from iocpgateway.endpoint import CentralEndpoint, Endpoint, SerialEndpoint

logger = logging.getLogger(__name__)


def pump_endpoint(maintained_connection: MaintainedConnection):
    """ the connected loop: reads from the endpoint and routes what arrived. """
    maintained_connection.resource.pump()


class Gateway:
    """
    Wires the central endpoint and the configured serial endpoints to a distributor,
    and keeps each of their connections open.
    """

    def __init__(self, config: GatewayConfig, distributor: MessageDistributor=None):
        self.config = config
        self.distributor = distributor or MessageDistributor()
        self.manager = ConnectionManager(pump_endpoint, config.server.retry_period)
        self.manager.events += self._connection_event
        self._stop_event = threading.Event()
        self._retry_periods = {}
        self.central = self._central_endpoint()
        self.distributor.register_endpoint(self.central)
        for endpoint_config in config.endpoints:
            endpoint = self._serial_endpoint(endpoint_config)
            self._retry_periods[endpoint.label] = endpoint_config.retry_period
            self.distributor.register_endpoint(endpoint)

    def _central_endpoint(self):
        server = self.config.server
        connector = SocketConnector(server.server, server.connect_timeout)
        return CentralEndpoint(connector, self.distributor)

    def _serial_endpoint(self, endpoint_config: EndpointConfig):
        connector = SerialConnector(serial_for_settings(endpoint_config.port, endpoint_config.settings))
        return SerialEndpoint(endpoint_config.label, connector, self.distributor)

    @property
    def endpoints(self):
        return (self.central,) + self.distributor.serial_endpoints

    def start(self):
        """ starts maintaining every connection, each on its own thread. """
        self._stop_event.clear()
        self._maintain(self.central)
        for endpoint in self.distributor.serial_endpoints:
            self._maintain(endpoint, self._retry_periods.get(endpoint.label))

    def _maintain(self, endpoint: Endpoint, retry_period=None):
        self.manager.available(str(endpoint), endpoint, endpoint.connector, retry_period)

    def stop(self):
        """ closes all connections and stops their threads. """
        self._stop_event.set()
        self.manager.stop()
        self.manager.update()

    def run(self, poll=0.1):
        """
        Starts the gateway and publishes connection events on the calling thread until stop() is called.
        """
        self.start()
        logger.info("gateway running with %d device(s), server %s" %
                    (len(self.distributor.serial_endpoints), self.config.server.server))
        try:
            while not self._stop_event.is_set():
                self.manager.update()
                self._stop_event.wait(poll)
        finally:
            self.stop()

    def _connection_event(self, event):
        endpoint = self._endpoint_for(event.connector)
        if isinstance(event, ConnectorConnectedEvent):
            logger.info("%s is connected" % endpoint)
        elif isinstance(event, ConnectorDisconnectedEvent):
            logger.info("%s is disconnected" % endpoint)

    def _endpoint_for(self, connector):
        for endpoint in self.endpoints:
            if endpoint.connector is connector:
                return endpoint
        return connector.endpoint
