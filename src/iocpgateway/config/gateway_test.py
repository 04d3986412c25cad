import os
import tempfile
import unittest
from unittest.mock import patch

import serial
from configobj import ConfigObjError
from hamcrest import assert_that, calling, contains_exactly, empty, is_, raises

from iocpgateway.config.gateway import load_gateway_config

no_user_file = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'no-such-user-config')

two_endpoints = """
[server]
host = sioc.local
port = 9000
retry_period = 2

[logging]
level = DEBUG

[endpoints]
    [[left]]
    port = /dev/ttyUSB0
    baudrate = 19200
    stopbits = 2
    retry_period = 1

    [[right]]
    port = loop://
    label = overhead
    parity = E
"""


@patch('os.path.expanduser', return_value=no_user_file)
class GatewayConfigTest(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmp.cleanup()

    def load(self, text):
        path = os.path.join(self.tmp.name, 'gateway.cfg')
        with open(path, 'w') as f:
            f.write(text)
        return load_gateway_config(path)

    def test_defaults(self, expanduser):
        config = load_gateway_config()
        assert_that(str(config.server.server), is_("localhost:8092"))
        assert_that(config.server.retry_period, is_(5.0))
        assert_that(config.server.connect_timeout, is_(5.0))
        assert_that(config.endpoints, is_(empty()))
        assert_that(config.log_level, is_("INFO"))

    def test_endpoints(self, expanduser):
        config = self.load(two_endpoints)
        assert_that(config.server.server.address, is_(("sioc.local", 9000)))
        assert_that(config.server.retry_period, is_(2.0))
        assert_that(config.log_level, is_("DEBUG"))
        assert_that([e.label for e in config.endpoints], contains_exactly("left", "overhead"))

        left, right = config.endpoints
        assert_that(left.port, is_("/dev/ttyUSB0"))
        assert_that(left.settings.baudrate, is_(19200))
        assert_that(left.settings.stopbits, is_(serial.STOPBITS_TWO))
        assert_that(left.settings.parity, is_(serial.PARITY_NONE))
        assert_that(left.retry_period, is_(1.0))

        assert_that(right.port, is_("loop://"))
        assert_that(right.settings.baudrate, is_(9600))
        assert_that(right.settings.parity, is_(serial.PARITY_EVEN))
        assert_that(right.settings.timeout, is_(0.5))
        assert_that(right.settings.write_timeout, is_(0.5))
        assert_that(right.retry_period, is_(None))

    def test_invalid_endpoint_is_skipped(self, expanduser):
        config = self.load(two_endpoints + """
    [[broken]]
    baudrate = fast
""")
        assert_that([e.label for e in config.endpoints], contains_exactly("left", "overhead"))

    def test_duplicate_label_is_skipped(self, expanduser):
        config = self.load("""
[endpoints]
    [[one]]
    port = /dev/ttyUSB0
    label = panel
    [[two]]
    port = /dev/ttyUSB1
    label = panel
""")
        assert_that([e.port for e in config.endpoints], contains_exactly("/dev/ttyUSB0"))

    def test_invalid_server_is_fatal(self, expanduser):
        path = os.path.join(self.tmp.name, 'gateway.cfg')
        with open(path, 'w') as f:
            f.write("[server]\nport = none\n")
        assert_that(calling(load_gateway_config).with_args(path), raises(ConfigObjError, "server.port"))

    def test_invalid_log_level_is_fatal(self, expanduser):
        path = os.path.join(self.tmp.name, 'gateway.cfg')
        with open(path, 'w') as f:
            f.write("[logging]\nlevel = LOUD\n")
        assert_that(calling(load_gateway_config).with_args(path), raises(ConfigObjError, "logging.level"))
