"""
Implements the IOCP line protocol spoken by the field devices and the SIOC server.

Each message is one ASCII line::

    Arn.<command>:<field>:<field>:

Registrations list the position names a device owns (``Arn.Inicio:10:20:``),
updates carry ``name=value`` pairs (``Arn.Resp:10=5:20=1:``), keep-alive and exit
carry no content (``Arn.Vivo:``, ``Arn.Fin:``).

Decoding is total: any text maps to exactly one MessageAction. Text that isn't IOCP
decodes as UNKNOWN, a known command without any usable content decodes as INVALID.
"""
import re

from iocpgateway.support.mixins import CommonEqualityMixin

HEADER = "Arn"
COMMAND_SEPARATOR = "."
CONTENT_SEPARATOR = ":"
VALUE_SEPARATOR = "="
LINE_TERMINATOR = "\r\n"

REGISTRATION_COMMAND = "Inicio"
UPDATE_COMMAND = "Resp"
KEEPALIVE_COMMAND = "Vivo"
EXIT_COMMAND = "Fin"

_integer = re.compile(r'[+-]?[0-9]+')


def parse_integer(text):
    """ parses a decimal integer, returning None when the text is not one.

    >>> parse_integer("42")
    42
    >>> parse_integer("-7")
    -7
    >>> parse_integer("4x") is None
    True
    >>> parse_integer("") is None
    True
    """
    return int(text) if _integer.fullmatch(text) else None


class Position(CommonEqualityMixin):
    """ The value of a single named position (a measurement or control point on a device). """

    def __init__(self, name: int, value: int):
        self.__dict__['name'] = name
        self.__dict__['value'] = value

    def __setattr__(self, key, value):
        raise AttributeError("Position is immutable")

    def __str__(self):
        return "%d%s%d" % (self.name, VALUE_SEPARATOR, self.value)

    def __repr__(self):
        return "Position(%d, %d)" % (self.name, self.value)


def parse_position(text):
    """ parses a ``name=value`` field. Returns None if the field isn't a position.

    >>> parse_position("10=5")
    Position(10, 5)
    >>> parse_position("10=") is None
    True
    >>> parse_position("10=5=3") is None
    True
    """
    parts = text.split(VALUE_SEPARATOR)
    if len(parts) != 2:
        return None
    name, value = parse_integer(parts[0]), parse_integer(parts[1])
    if name is None or value is None:
        return None
    return Position(name, value)


class Actions(object):
    """ the kinds of message action and their command keyword on the wire, where they have one. """

    registration = "registration"
    update = "update"
    keepalive = "keepalive"
    exit = "exit"
    invalid = "invalid"
    unknown = "unknown"

    commands = {
        REGISTRATION_COMMAND: registration,
        UPDATE_COMMAND: update,
        KEEPALIVE_COMMAND: keepalive,
        EXIT_COMMAND: exit,
    }

    keywords = {kind: command for command, kind in commands.items()}


class MessageActionVisitor:
    """
    Dispatch target for MessageAction.apply(). There is one method per action kind, so a
    visitor sees every kind of action. The default implementation of each method does nothing.
    """

    def registration(self, action: 'MessageAction'):
        """ a device declares the position names it owns. """

    def update(self, action: 'MessageAction'):
        """ new values for one or more positions. """

    def keepalive(self, action: 'MessageAction'):
        """ liveness handshake. """

    def exit(self, action: 'MessageAction'):
        """ the peer is going away. """

    def invalid(self, action: 'MessageAction'):
        """ a known command whose content could not be used. """

    def unknown(self, action: 'MessageAction'):
        """ text that is not IOCP. """


class MessageAction(CommonEqualityMixin):
    """
    An immutable protocol action: a kind from Actions together with its content.
    The content is a frozenset of position names for registrations, a tuple of
    positions for updates and empty for everything else.
    """

    def __init__(self, kind, content=()):
        if kind not in _visits:
            raise ValueError("unknown action kind %s" % kind)
        self.__dict__['kind'] = kind
        self.__dict__['content'] = content

    def __setattr__(self, key, value):
        raise AttributeError("MessageAction is immutable")

    @property
    def names(self) -> frozenset:
        """ the registered position names. Empty for anything other than a registration. """
        return self.content if self.kind == Actions.registration else frozenset()

    @property
    def positions(self) -> tuple:
        """ the updated positions. Empty for anything other than an update. """
        return self.content if self.kind == Actions.update else ()

    @property
    def transmittable(self):
        """ determines if this action has a wire representation. """
        return self.kind in Actions.keywords

    def apply(self, visitor: MessageActionVisitor):
        return getattr(visitor, _visits[self.kind])(self)

    def __str__(self):
        return encode_action(self) if self.transmittable else self.kind.upper()

    def __repr__(self):
        return "MessageAction(%s, %r)" % (self.kind, self.content)


# the visitor method for each kind of action
_visits = {
    Actions.registration: "registration",
    Actions.update: "update",
    Actions.keepalive: "keepalive",
    Actions.exit: "exit",
    Actions.invalid: "invalid",
    Actions.unknown: "unknown",
}


def registration(names) -> MessageAction:
    return MessageAction(Actions.registration, frozenset(names))


def update(positions) -> MessageAction:
    return MessageAction(Actions.update, tuple(positions))


KEEPALIVE = MessageAction(Actions.keepalive)
EXIT = MessageAction(Actions.exit)
INVALID = MessageAction(Actions.invalid)
UNKNOWN = MessageAction(Actions.unknown)


class Origin(CommonEqualityMixin):
    """
    Who produced a message: the central server, or a serial endpoint identified by its label.
    Only the label is kept, never the endpoint itself.
    """

    def __init__(self, label=None):
        self.label = label

    @classmethod
    def serial(cls, label):
        if label is None:
            raise ValueError("a serial origin needs a label")
        return cls(label)

    @classmethod
    def central(cls):
        return cls()

    @property
    def is_central(self):
        return self.label is None

    def __str__(self):
        return "central" if self.is_central else "serial '%s'" % self.label


class Message:
    """ an action tagged with where it came from. """

    def __init__(self, action: MessageAction, origin: Origin):
        self.action = action
        self.origin = origin

    def __str__(self):
        return "%s from %s" % (self.action, self.origin)


def _content_fields(fields, parse):
    return [value for value in (parse(field) for field in fields) if value is not None]


def _decode_registration(fields):
    names = _content_fields(fields, parse_integer)
    return registration(names) if names else INVALID


def _decode_update(fields):
    positions = _content_fields(fields, parse_position)
    return update(positions) if positions else INVALID


_decoders = {
    Actions.registration: _decode_registration,
    Actions.update: _decode_update,
    Actions.keepalive: lambda fields: KEEPALIVE,
    Actions.exit: lambda fields: EXIT,
}


def decode_action(text) -> MessageAction:
    """
    Decodes one line of text. Never raises.

    >>> decode_action("Arn.Inicio:20:10:") == registration([10, 20])
    True
    >>> decode_action("Arn.Resp:10=5:")
    MessageAction(update, (Position(10, 5),))
    >>> decode_action("Arn.Resp:") is INVALID
    True
    >>> decode_action("hello") is UNKNOWN
    True
    """
    line = text.strip()
    prefix = HEADER + COMMAND_SEPARATOR
    if not line.startswith(prefix):
        return UNKNOWN
    fields = line[len(prefix):].split(CONTENT_SEPARATOR)
    kind = Actions.commands.get(fields[0])
    if kind is None:
        return UNKNOWN
    return _decoders[kind](fields[1:])


def encode_action(action: MessageAction) -> str:
    """
    Encodes an action as a line of text, without the line terminator.
    Registration names are written in ascending order, update positions in their given order.

    >>> encode_action(registration([20, 10]))
    'Arn.Inicio:10:20:'
    >>> encode_action(update([Position(10, 5), Position(3, -1)]))
    'Arn.Resp:10=5:3=-1:'
    >>> encode_action(KEEPALIVE)
    'Arn.Vivo:'
    """
    keyword = Actions.keywords.get(action.kind)
    if keyword is None:
        raise ValueError("%s actions have no wire encoding" % action.kind)
    if action.kind == Actions.registration:
        fields = [str(name) for name in sorted(action.content)]
    else:
        fields = [str(field) for field in action.content]
    return HEADER + COMMAND_SEPARATOR + keyword + CONTENT_SEPARATOR + \
        "".join(field + CONTENT_SEPARATOR for field in fields)


def encode_line(action: MessageAction) -> bytes:
    """ encodes an action as the bytes for one line on the wire, including the terminator. """
    return (encode_action(action) + LINE_TERMINATOR).encode('ascii')

