'''Render backends. Both take the same calls from the dumper: one packet
is begin_packet(), emit() of its nodes, then end_packet(), or
abort_packet() when it could not be read; a compressed
packet wraps its nested packets in begin_contents()/end_contents().'''

INDENT = b'    '


class IndentWriter(object):
    """Binary writer prefixing every visual line with four spaces per
    level. The indent goes out once per line, however many writes make up
    that line."""

    def __init__(self, sink, level=0):
        self.sink = sink
        self.level = level
        self.lstart = True

    def increase(self):
        self.level += 1

    def decrease(self):
        if self.level > 0:
            self.level -= 1

    def write(self, data):
        if isinstance(data, str):
            data = data.encode('utf-8')
        while data:
            if self.lstart:
                self.sink.write(INDENT * self.level)
                self.lstart = False
            pos = data.find(b'\n')
            if pos < 0:
                self.sink.write(data)
                return
            self.sink.write(data[:pos + 1])
            self.lstart = True
            data = data[pos + 1:]

    def line(self, *parts):
        for part in parts:
            self.write(part)
        self.write(b'\n')


class TextRenderer(object):
    def __init__(self, sink, level=0):
        self.out = IndentWriter(sink, level)

    def begin_packet(self):
        pass

    def emit(self, node):
        node.render_text(self.out)

    def end_packet(self):
        pass

    def abort_packet(self):
        pass

    def begin_contents(self):
        self.out.increase()

    def end_contents(self, ok):
        self.out.decrease()

    def notice(self, text):
        self.out.line(text)


class JsonRenderer(object):
    '''Builds a list of packet objects. Nested packet lists are attached
    to their compressed packet as "contents" only when the nested dump
    completed.'''

    def __init__(self):
        self.result = []
        self._lists = [self.result]
        self._packets = []

    def begin_packet(self):
        self._packets.append({})

    def emit(self, node):
        node.to_json(self._packets[-1])

    def end_packet(self):
        self._lists[-1].append(self._packets.pop())

    def abort_packet(self):
        # never attached: the partial object is released here
        self._packets.pop()

    def begin_contents(self):
        self._lists.append([])

    def end_contents(self, ok):
        contents = self._lists.pop()
        if ok:
            self._packets[-1]['contents'] = contents

    def notice(self, text):
        pass
