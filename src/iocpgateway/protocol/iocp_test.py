import unittest
from unittest.mock import Mock

from hamcrest import assert_that, calling, contains_exactly, empty, equal_to, is_, is_not, raises

from iocpgateway.protocol.iocp import EXIT, INVALID, KEEPALIVE, UNKNOWN, Actions, Message, MessageAction, \
    MessageActionVisitor, Origin, Position, decode_action, encode_action, encode_line, parse_position, \
    registration, update


class PositionTest(unittest.TestCase):
    def test_str(self):
        assert_that(str(Position(10, -5)), is_("10=-5"))

    def test_equality(self):
        assert_that(Position(1, 2), is_(equal_to(Position(1, 2))))
        assert_that(Position(1, 2), is_not(equal_to(Position(1, 3))))
        assert_that(hash(Position(1, 2)), is_(hash(Position(1, 2))))

    def test_immutable(self):
        p = Position(1, 2)
        assert_that(calling(setattr).with_args(p, 'value', 3), raises(AttributeError))

    def test_parse_position_rejects_non_integers(self):
        assert_that(parse_position("a=1"), is_(None))
        assert_that(parse_position("1=b"), is_(None))
        assert_that(parse_position("15"), is_(None))
        assert_that(parse_position("+3=-4"), is_(Position(3, -4)))


class DecodeTest(unittest.TestCase):

    def test_registration(self):
        action = decode_action("Arn.Inicio:10:20:")
        assert_that(action.kind, is_(Actions.registration))
        assert_that(action.names, is_(frozenset({10, 20})))

    def test_update(self):
        action = decode_action("Arn.Resp:10=5:20=-1:")
        assert_that(action.kind, is_(Actions.update))
        assert_that(action.positions, contains_exactly(Position(10, 5), Position(20, -1)))

    def test_update_keeps_order_and_duplicates(self):
        action = decode_action("Arn.Resp:20=1:10=2:20=3:")
        assert_that(action.positions, contains_exactly(Position(20, 1), Position(10, 2), Position(20, 3)))

    def test_keepalive_and_exit(self):
        assert_that(decode_action("Arn.Vivo:"), is_(KEEPALIVE))
        assert_that(decode_action("Arn.Vivo"), is_(KEEPALIVE))
        assert_that(decode_action("Arn.Fin:"), is_(EXIT))

    def test_surrounding_whitespace_is_ignored(self):
        assert_that(decode_action("  Arn.Resp:1=2:\r\n"), is_(update([Position(1, 2)])))

    def test_malformed_fields_are_dropped(self):
        assert_that(decode_action("Arn.Resp:10=5:x=1:7:"), is_(update([Position(10, 5)])))
        assert_that(decode_action("Arn.Inicio:10:abc::30:"), is_(registration([10, 30])))

    def test_no_usable_content_is_invalid(self):
        assert_that(decode_action("Arn.Resp:"), is_(INVALID))
        assert_that(decode_action("Arn.Resp:abc:"), is_(INVALID))
        assert_that(decode_action("Arn.Inicio:"), is_(INVALID))
        assert_that(decode_action("Arn.Inicio:x:y:"), is_(INVALID))

    def test_not_iocp_is_unknown(self):
        for text in ("", "   ", "hello", "Arn", "Arn.", "Arn.Status:", "Arn.Respuesta:1=2:", "arn.Resp:1=2:"):
            assert_that(decode_action(text), is_(UNKNOWN), text)

    def test_never_raises(self):
        for text in ("Arn.:::", "Arn.Resp:=:", "Arn.Inicio:-:", "\x00\xff", "Arn.Resp:1=2=3:"):
            decode_action(text)


class EncodeTest(unittest.TestCase):

    def test_registration_names_ascending(self):
        assert_that(encode_action(registration([30, 10, 20])), is_("Arn.Inicio:10:20:30:"))

    def test_update_in_order(self):
        assert_that(encode_action(update([Position(20, 1), Position(10, 0)])), is_("Arn.Resp:20=1:10=0:"))

    def test_keepalive_and_exit(self):
        assert_that(encode_action(KEEPALIVE), is_("Arn.Vivo:"))
        assert_that(encode_action(EXIT), is_("Arn.Fin:"))

    def test_invalid_and_unknown_cannot_be_encoded(self):
        assert_that(calling(encode_action).with_args(INVALID), raises(ValueError))
        assert_that(calling(encode_action).with_args(UNKNOWN), raises(ValueError))

    def test_encode_line(self):
        assert_that(encode_line(update([Position(10, 5)])), is_(b"Arn.Resp:10=5:\r\n"))

    def test_decode_of_encoded(self):
        for action in (registration([5, 1]), update([Position(1, 2), Position(3, 4)]), KEEPALIVE, EXIT):
            assert_that(decode_action(encode_action(action)), is_(action))


class MessageActionTest(unittest.TestCase):

    def test_unknown_kind(self):
        assert_that(calling(MessageAction).with_args("bogus"), raises(ValueError))

    def test_content_accessors(self):
        reg = registration([1])
        upd = update([Position(1, 2)])
        assert_that(reg.positions, is_(empty()))
        assert_that(upd.names, is_(empty()))
        assert_that(KEEPALIVE.names, is_(empty()))

    def test_transmittable(self):
        assert_that(KEEPALIVE.transmittable, is_(True))
        assert_that(INVALID.transmittable, is_(False))
        assert_that(UNKNOWN.transmittable, is_(False))

    def test_str(self):
        assert_that(str(update([Position(1, 2)])), is_("Arn.Resp:1=2:"))
        assert_that(str(INVALID), is_("INVALID"))

    def test_apply_dispatches_by_kind(self):
        visitor = Mock(spec=MessageActionVisitor)
        visitor.update.return_value = 'sent'
        action = update([Position(1, 2)])
        assert_that(action.apply(visitor), is_('sent'))
        visitor.update.assert_called_once_with(action)
        UNKNOWN.apply(visitor)
        visitor.unknown.assert_called_once_with(UNKNOWN)
        visitor.registration.assert_not_called()

    def test_default_visitor_does_nothing(self):
        for action in (registration([1]), update([Position(1, 1)]), KEEPALIVE, EXIT, INVALID, UNKNOWN):
            assert_that(action.apply(MessageActionVisitor()), is_(None))


class OriginTest(unittest.TestCase):

    def test_serial(self):
        origin = Origin.serial("left")
        assert_that(origin.is_central, is_(False))
        assert_that(origin.label, is_("left"))
        assert_that(str(Message(KEEPALIVE, origin)), is_("Arn.Vivo: from serial 'left'"))

    def test_serial_needs_label(self):
        assert_that(calling(Origin.serial).with_args(None), raises(ValueError))

    def test_central(self):
        assert_that(Origin.central().is_central, is_(True))
        assert_that(Origin.central(), is_(equal_to(Origin.central())))
        assert_that(Origin.central(), is_not(equal_to(Origin.serial("x"))))
