import unittest
from unittest.mock import MagicMock, Mock, call, patch

import timeout_decorator
from hamcrest import assert_that, calling, contains_exactly, empty, equal_to, instance_of, is_, raises

from iocpgateway.connection_maintenance import ConnectionManager, MaintainedConnection, MaintainedConnectionLoop
from iocpgateway.connector.base import AbstractConnector, ConnectorConnectedEvent, ConnectorError
from iocpgateway.support.retry_strategy import PeriodRetryStrategy
from iocpgateway.support.testing_test import called_once, called_once_with, called_with, debug_timeout, not_called


class DeviceConnector(AbstractConnector):
    """ connects to a pretend device that can be unplugged and made to refuse connections. """

    def __init__(self):
        super().__init__()
        self.plugged_in = True
        self.refuse = False

    @property
    def endpoint(self):
        return "/dev/pretend"

    def _connect(self):
        if self.refuse:
            raise ConnectorError("device busy")
        conduit = Mock()
        conduit.open = True
        return conduit

    def _try_available(self):
        return self.plugged_in


class MaintainedConnectionTest(unittest.TestCase):
    def setUp(self):
        self.connector = DeviceConnector()
        self.retry = Mock(return_value=0)
        self.events = Mock()
        self.log = Mock()
        self.sut = MaintainedConnection("panel", self.connector, self.retry, self.events, self.log)

    def test_forwards_connector_events(self):
        assert_that(self.connector.events.handlers(), contains_exactly(self.sut._connector_events))
        self.sut.maintain()
        event = self.events.fire.call_args[0][0]
        assert_that(event, is_(instance_of(ConnectorConnectedEvent)))

    def test_connects_when_due(self):
        assert_that(self.sut.maintain(100), is_(True))
        self.retry.assert_called_with(100)
        assert_that(self.connector.connected, is_(True))
        assert_that(self.log.info, is_(called_once()))

    def test_waits_when_not_due(self):
        self.retry.return_value = 3
        assert_that(self.sut.maintain(100), is_(False))
        assert_that(self.connector.connected, is_(False))

    def test_unplugged_device_is_not_tried(self):
        self.connector.plugged_in = False
        assert_that(self.sut._open(), is_(False))
        assert_that(self.connector.connected, is_(False))

    def test_connected_device_is_not_tried_again(self):
        self.sut._open()
        self.connector._connect = Mock()
        assert_that(self.sut._open(), is_(False))
        assert_that(self.connector._connect, is_(not_called()))

    def test_refused_connection_is_logged(self):
        self.connector.refuse = True
        assert_that(self.sut._open(), is_(True))
        assert_that(self.connector.connected, is_(False))
        assert_that(self.log.warning, is_(called_once()))

    def test_close(self):
        self.sut._open()
        assert_that(self.sut._close(), is_(True))
        assert_that(self.connector.connected, is_(False))
        assert_that(self.sut._close(), is_(False))


class MaintainedConnectionLoopTest(unittest.TestCase):
    def setUp(self):
        self.mc = Mock()
        self.mc.resource = "panel"
        self.mc.retry_strategy.return_value = 0.1
        self.pump = Mock()
        self.sut = MaintainedConnectionLoop(self.mc, self.pump)
        self.sut.stop_event.wait = Mock()

    def test_thread_named_after_resource(self):
        assert_that(self.sut.name, is_("panel"))

    def test_pump_gets_the_connection(self):
        self.sut._connected_loop()
        assert_that(self.pump, is_(called_once_with(self.mc)))

    def test_no_pump(self):
        MaintainedConnectionLoop(self.mc)._connected_loop()

    @timeout_decorator.timeout(debug_timeout(2))
    @patch('time.sleep')
    def test_pumps_until_the_connection_drops(self, sleep):
        pumps = 3

        def pump(mc):
            mc.connector.connected = self.pump.call_count < pumps

        self.mc.connector.connected = True
        self.pump.side_effect = pump
        self.sut.loop()
        assert_that(self.pump.call_count, is_(pumps))
        assert_that(sleep.call_count, is_(pumps))
        assert_that(self.mc._close, is_(called_once()))
        assert_that(self.sut.stop_event.wait, is_(called_with(0.1)))

    @timeout_decorator.timeout(debug_timeout(2))
    def test_failing_pump_closes_then_waits(self):
        self.mc.connector.connected = True
        self.pump.side_effect = ConnectorError

        assert_that(calling(self.sut.loop), raises(ConnectorError))
        assert_that(self.mc.mock_calls,
                    is_([call.maintain(), call._close(), call.retry_strategy(dry_run=True)]))
        assert_that(self.sut.stop_event.wait, is_(called_once_with(0.1)))

    def test_overdue_retry_does_not_wait(self):
        self.mc.connector.connected = False
        self.mc.retry_strategy.return_value = -3
        self.sut.loop()
        assert_that(self.sut.stop_event.wait, is_(called_once_with(0)))
        assert_that(self.pump, is_(not_called()))

    def test_shutdown_closes(self):
        self.sut.shutdown()
        assert_that(self.mc._close, is_(called_once()))

    @timeout_decorator.timeout(debug_timeout(5))
    def test_background_thread(self):
        sut = MaintainedConnectionLoop(self.mc, self.pump)
        self.mc.connector.connected = False
        self.mc.retry_strategy.return_value = 0.01
        sut.start()
        sut.stop()
        assert_that(self.mc._close, is_(called_with()))
        assert_that(sut.running(), is_(False))


class ConnectionManagerTest(unittest.TestCase):
    def setUp(self):
        self.sut = ConnectionManager()
        self.created = []

        def new_connection(resource, connector, retry_period, events):
            mc = MagicMock()
            mc.connector = connector
            mc.retry_period = retry_period
            self.created.append(mc)
            return mc
        self.sut._new_maintained_connection = Mock(side_effect=new_connection)

    def test_nothing_maintained_at_first(self):
        sut = ConnectionManager()
        assert_that(sut.connections, is_(equal_to({})))
        assert_that(sut.retry_period, is_(5))

    def test_available_starts_a_thread(self):
        connector = Mock()
        mc = self.sut.available("panel", "resource", connector)
        assert_that(mc.loop.start, is_(called_once()))
        assert_that(mc.retry_period, is_(5))
        assert_that(self.sut.connections, is_({"panel": mc}))

    def test_available_with_own_retry_period(self):
        mc = self.sut.available("panel", "resource", Mock(), retry_period=1.5)
        assert_that(mc.retry_period, is_(1.5))

    def test_available_again_is_ignored(self):
        connector = Mock()
        first = self.sut.available("panel", "resource", connector)
        assert_that(self.sut.available("panel", "resource", connector), is_(first))
        assert_that(len(self.created), is_(1))
        assert_that(first.loop.start, is_(called_once()))

    def test_new_connector_replaces_the_old(self):
        old = self.sut.available("panel", "resource", Mock())
        old_loop = old.loop
        new = self.sut.available("panel", "resource", Mock())
        assert_that(old_loop.stop, is_(called_once()))
        assert_that(old.loop, is_(None))
        assert_that(new.loop.start, is_(called_once()))
        assert_that(self.sut.connections, is_({"panel": new}))

    def test_unavailable(self):
        mc = self.sut.available("panel", "resource", Mock())
        loop = mc.loop
        self.sut.unavailable("panel")
        assert_that(loop.stop, is_(called_once()))
        assert_that(self.sut.connections, is_(empty()))
        mc.connector.events.remove.assert_called_once_with(mc._connector_events)

    def test_unavailable_unknown(self):
        self.sut.unavailable("nothing")

    def test_stop_all(self):
        self.sut.available("left", "l", Mock())
        self.sut.available("right", "r", Mock())
        self.sut.stop()
        assert_that(self.sut.connections, is_(empty()))

    def test_events_wait_for_update(self):
        listener = Mock()
        self.sut.events += listener
        self.sut.events.fire("connected")
        listener.assert_not_called()
        assert_that(self.sut.update(), is_(1))
        listener.assert_called_once_with("connected")

    def test_new_maintained_connection(self):
        pump = Mock()
        sut = ConnectionManager(pump, 20)
        connector = DeviceConnector()
        mc = sut._new_maintained_connection("panel", connector, 20, sut.events)
        assert_that(mc, is_(instance_of(MaintainedConnection)))
        assert_that(mc.retry_strategy, is_(equal_to(PeriodRetryStrategy(20))))
        assert_that(mc.events, is_(sut.events))
        assert_that(mc.loop, is_(instance_of(MaintainedConnectionLoop)))
        assert_that(mc.loop._loop, is_(pump))
