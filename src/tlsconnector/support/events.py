class EventSource(object):
    """
    A list of handlers that are each invoked with the arguments passed to fire().
    Handlers are called on the firing thread, in the order they were added.
    """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        # iterate a copy - a handler may remove itself
        for handler in self.handlers():
            handler(*args, **kwargs)

    def fire_all(self, events):
        for e in events:
            self.fire(e)
