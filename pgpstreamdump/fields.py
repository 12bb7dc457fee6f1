'''Backend-agnostic dump nodes. A packet is decoded once into a DumpNode;
the text and JSON renderers each project the same entries.'''

from .utils import format_time, hexdump


def _bool_text(value):
    if isinstance(value, bool):
        return int(value)
    return value


class Field(object):
    """A single named entry of a dump node. Subclasses implement
    render_text() and to_json(); the text and json flags say whether the
    entry shows up in either projection."""

    def __init__(self, name, key=None, text=True, json=True):
        self.name = name
        self.key = key if key is not None else name
        self.text = text
        self.json = json

    def render_text(self, out):
        pass

    def to_json(self, obj):
        pass

    def __repr__(self):
        return "<%s: %s>" % (self.__class__.__name__, self.name)


class ValueField(Field):
    def __init__(self, name, value, key=None, **kwargs):
        super(ValueField, self).__init__(name, key, **kwargs)
        self.value = value

    def render_text(self, out):
        out.line("%s: %s" % (self.name, _bool_text(self.value)))

    def to_json(self, obj):
        obj[self.key] = self.value


class TextField(Field):
    '''Raw bytes printed unchanged in text, decoded leniently for JSON.'''

    def __init__(self, name, data, key=None, **kwargs):
        super(TextField, self).__init__(name, key, **kwargs)
        self.data = data

    def render_text(self, out):
        out.line("%s: " % self.name, self.data)

    def to_json(self, obj):
        obj[self.key] = self.data.decode('utf-8', 'replace')


class AlgField(Field):
    def __init__(self, name, alg, lookup, key=None, **kwargs):
        super(AlgField, self).__init__(name, key, **kwargs)
        self.alg = alg
        self.lookup = lookup

    def render_text(self, out):
        out.line("%s: %d (%s)" % (self.name, self.alg, self.lookup(self.alg)))

    def to_json(self, obj):
        obj[self.key] = self.alg
        obj[self.key + '.str'] = self.lookup(self.alg)


class HexField(Field):
    def __init__(self, name, data, key=None, count=False, **kwargs):
        super(HexField, self).__init__(name, key, **kwargs)
        self.data = bytes(data)
        self.count = count

    def render_text(self, out):
        if self.count:
            out.line("%s: 0x%s (%d bytes)" % (
                self.name, self.data.hex(), len(self.data)))
        else:
            out.line("%s: 0x%s" % (self.name, self.data.hex()))

    def to_json(self, obj):
        obj[self.key] = self.data.hex()


class TimeField(Field):
    def __init__(self, name, timestamp, key=None, **kwargs):
        super(TimeField, self).__init__(name, key, **kwargs)
        self.timestamp = timestamp

    def render_text(self, out):
        out.line("%s: %d (%s)" % (
            self.name, self.timestamp, format_time(self.timestamp)))

    def to_json(self, obj):
        obj[self.key] = self.timestamp


class ExpirationField(Field):
    def __init__(self, name, seconds, key=None, **kwargs):
        super(ExpirationField, self).__init__(name, key, **kwargs)
        self.seconds = seconds

    def render_text(self, out):
        if self.seconds:
            out.line("%s: %d seconds (%d days)" % (
                self.name, self.seconds, self.seconds // 86400))
        else:
            out.line("%s: 0 (never)" % self.name)

    def to_json(self, obj):
        obj[self.key] = self.seconds


class MpiField(Field):
    '''Bit count always; the magnitude bytes only when contents is set.'''

    def __init__(self, name, mpi, key=None, contents=False, **kwargs):
        super(MpiField, self).__init__(name, key, **kwargs)
        self.mpi = mpi
        self.contents = contents

    def render_text(self, out):
        if self.contents:
            out.line("%s: %d bits, %s" % (
                self.name, self.mpi.bits, self.mpi.raw.hex()))
        else:
            out.line("%s: %d bits" % (self.name, self.mpi.bits))

    def to_json(self, obj):
        obj[self.key + '.bits'] = self.mpi.bits
        if self.contents:
            obj[self.key + '.raw'] = self.mpi.raw.hex()


class VecField(Field):
    '''Opaque fixed-size material of the newer algorithm families. Text
    only for now: JSON consumers see these fields missing.'''

    def __init__(self, name, data, contents=False):
        super(VecField, self).__init__(name, json=False)
        self.data = bytes(data)
        self.contents = contents

    def render_text(self, out):
        if self.contents:
            out.line("%s, %s" % (self.name, self.data.hex()))
        else:
            out.line(self.name)


class AlgsField(Field):
    def __init__(self, name, algs, lookup, key=None, **kwargs):
        super(AlgsField, self).__init__(name, key, **kwargs)
        self.algs = list(algs)
        self.lookup = lookup

    def render_text(self, out):
        out.line("%s: %s (%s)" % (
            self.name,
            ", ".join(self.lookup(alg) for alg in self.algs),
            ", ".join("%d" % alg for alg in self.algs)))

    def to_json(self, obj):
        obj[self.key] = self.algs
        obj[self.key + '.str'] = [self.lookup(alg) for alg in self.algs]


class FlagsField(Field):
    """A bit field shown as hex plus the names of the set bits. In JSON it
    is either the value with a list of names, or one boolean per known bit
    when split is set."""

    def __init__(self, name, value, flags, key=None, none_label=None,
                 split=False, **kwargs):
        super(FlagsField, self).__init__(name, key, **kwargs)
        self.value = value
        self.flags = flags
        self.none_label = none_label
        self.split = split

    def names(self):
        return [label for bit, label in self.flags if self.value & bit]

    def render_text(self, out):
        text = "%s: 0x%02x ( " % (self.name, self.value)
        if not self.value and self.none_label:
            text += self.none_label
        text += "".join("%s " % label for label in self.names())
        out.line(text + ")")

    def to_json(self, obj):
        if self.split:
            for bit, label in self.flags:
                obj[label] = bool(self.value & bit)
            return
        obj[self.key] = self.value
        obj[self.key + '.str'] = self.names()


class LineField(Field):
    '''A line of text output with no JSON counterpart.'''

    def __init__(self, line):
        super(LineField, self).__init__(None, json=False)
        self.text_line = line

    def render_text(self, out):
        out.line(self.text_line)


class HexdumpField(Field):
    def __init__(self, title, data, key='raw', **kwargs):
        super(HexdumpField, self).__init__(title, key, **kwargs)
        self.data = bytes(data)

    def render_text(self, out):
        if self.name is not None:
            out.line(self.name)
        out.increase()
        for row in hexdump(self.data):
            out.line(row)
        out.decrease()

    def to_json(self, obj):
        obj[self.key] = self.data.hex()


class NodeField(Field):
    """A nested node. Without a name it renders in text at the current
    level; without a key its JSON members merge into the parent object,
    otherwise into the object under key (shared with any sibling using
    the same key)."""

    def __init__(self, name, node, key=None, **kwargs):
        super(NodeField, self).__init__(name, key, **kwargs)
        self.key = key
        self.node = node

    def render_text(self, out):
        if self.name is None:
            self.node.render_text(out)
            return
        out.line("%s:" % self.name)
        out.increase()
        self.node.render_text(out)
        out.decrease()

    def to_json(self, obj):
        if self.key is None:
            self.node.to_json(obj)
        else:
            self.node.to_json(obj.setdefault(self.key, {}))


class NodeListField(Field):
    def __init__(self, name, nodes, key=None, **kwargs):
        super(NodeListField, self).__init__(name, key, **kwargs)
        self.nodes = list(nodes)

    def render_text(self, out):
        out.line("%s:" % self.name)
        out.increase()
        for node in self.nodes:
            node.render_text(out)
        if not self.nodes:
            out.line("none")
        out.decrease()

    def to_json(self, obj):
        obj.setdefault(self.key, []).extend(
            node.to_json() for node in self.nodes)


class DumpNode(object):
    '''An ordered sequence of fields. A title renders as its own line, with
    the entries one level deeper.'''

    def __init__(self, title=None):
        self.title = title
        self.entries = []

    def __len__(self):
        return len(self.entries)

    def add(self, field):
        self.entries.append(field)
        return field

    def value(self, name, value, key=None, **kwargs):
        return self.add(ValueField(name, value, key, **kwargs))

    def text(self, name, data, key=None, **kwargs):
        return self.add(TextField(name, data, key, **kwargs))

    def alg(self, name, alg, lookup, key=None, **kwargs):
        return self.add(AlgField(name, alg, lookup, key, **kwargs))

    def hex(self, name, data, key=None, count=False, **kwargs):
        return self.add(HexField(name, data, key, count, **kwargs))

    def time(self, name, timestamp, key=None, **kwargs):
        return self.add(TimeField(name, timestamp, key, **kwargs))

    def expiration(self, name, seconds, key=None, **kwargs):
        return self.add(ExpirationField(name, seconds, key, **kwargs))

    def mpi(self, name, mpi, key=None, contents=False):
        return self.add(MpiField(name, mpi, key, contents))

    def vec(self, name, data, contents=False):
        return self.add(VecField(name, data, contents))

    def algs(self, name, algs, lookup, key=None, **kwargs):
        return self.add(AlgsField(name, algs, lookup, key, **kwargs))

    def flags(self, name, value, flags, key=None, **kwargs):
        return self.add(FlagsField(name, value, flags, key, **kwargs))

    def line(self, text):
        return self.add(LineField(text))

    def hexdump(self, title, data, key='raw', **kwargs):
        return self.add(HexdumpField(title, data, key, **kwargs))

    def node(self, name, node, key=None, **kwargs):
        return self.add(NodeField(name, node, key, **kwargs))

    def nodes(self, name, nodes, key=None, **kwargs):
        return self.add(NodeListField(name, nodes, key, **kwargs))

    def render_text(self, out):
        if self.title is not None:
            out.line(self.title)
            out.increase()
        for entry in self.entries:
            if entry.text:
                entry.render_text(out)
        if self.title is not None:
            out.decrease()

    def to_json(self, obj=None):
        if obj is None:
            obj = {}
        for entry in self.entries:
            if entry.json:
                entry.to_json(obj)
        return obj

    def __repr__(self):
        return "<%s: %s, %d entries>" % (
            self.__class__.__name__, self.title, len(self.entries))
