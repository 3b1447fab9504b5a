from collections import deque
from datetime import datetime
from typing import Callable, Optional


class Channel:
    """
    Message sink for geometry diagnostics.

    The chain builder, part detector and offset engine accept an optional
    channel and report their progress and every warning they raise through
    it. A channel fans each message out to its watchers and can keep the
    most recent messages in a ring buffer, which is how tests and hosts
    collect the diagnostics of a single call.

    Usage:
        channel = Channel("offset", buffer_size=100, timestamp=True)
        channel.watch(print)
        offset_chain(chain, 1.5, channel=channel)
        list(channel.buffer)
    """

    def __init__(
        self,
        name: str,
        buffer_size: int = 0,
        line_end: Optional[str] = None,
        timestamp: bool = False,
    ):
        self.name = name
        self.watchers = []
        self.line_end = line_end
        self.timestamp = timestamp
        self.buffer_size = 0
        self.buffer = None
        self.errors = []
        self.resize_buffer(buffer_size)

    def __repr__(self):
        return f"Channel({self.name!r}, buffer_size={self.buffer_size}, line_end={self.line_end!r})"

    def __call__(self, message: str, *args, indent: Optional[bool] = True, **kwargs):
        text = str(message)
        if self.line_end is not None:
            text += self.line_end
        if indent:
            text = "    " + text.replace("\n", "\n    ")
        if self.timestamp:
            stamp = datetime.now().strftime("[%H:%M:%S] ")
            text = stamp + text.replace("\n", "\n" + stamp)
        if self.buffer is not None:
            self.buffer.append(text)
        for watcher in list(self.watchers):
            if isinstance(watcher, Channel):
                watcher(text, indent=False)
                continue
            try:
                watcher(text)
            except Exception as e:
                # A failing watcher is recorded and the others still get the message.
                self.errors.append((watcher, e))

    def __len__(self):
        return self.buffer_size

    def __iadd__(self, other):
        self.watch(other)
        return self

    def __isub__(self, other):
        self.unwatch(other)
        return self

    def __bool__(self):
        """
        A channel is truthy when anything would receive its messages. Callers
        use this to skip formatting diagnostics nobody listens to.
        """
        return bool(self.watchers) or self.buffer is not None

    def watch(self, monitor_function: Callable):
        """
        Add a watcher. It first receives the buffered history, if any.
        """
        if any(w is monitor_function for w in self.watchers):
            return
        self.watchers.append(monitor_function)
        if self.buffer is not None:
            for line in list(self.buffer):
                monitor_function(line)

    def unwatch(self, monitor_function: Callable):
        for w in list(self.watchers):
            if w is monitor_function:
                self.watchers.remove(w)
                return
        raise ValueError(f"{monitor_function!r} is not watching channel {self.name!r}")

    def resize_buffer(self, new_size: int):
        if new_size <= 0:
            self.buffer = None
            self.buffer_size = 0
            return
        if self.buffer is None:
            self.buffer = deque(maxlen=new_size)
        else:
            self.buffer = deque(self.buffer, maxlen=new_size)
        self.buffer_size = new_size
