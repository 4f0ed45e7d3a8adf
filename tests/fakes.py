import asyncio


class FakeConnection:
    """In-memory stand-in for a warehouse driver connection.

    ``script`` is shared across connections from one connector; each execute
    pops the next item (an exception to raise or a list of rows). When the
    script runs dry ``rows`` is returned.
    """

    def __init__(self, script=None, rows=None, delay=0.0, cancel_delay=0.0, close_error=None):
        self.script = script if script is not None else []
        self.rows = rows or []
        self.delay = delay
        self.cancel_delay = cancel_delay
        self.close_error = close_error
        self.initialized = False
        self.init_calls = 0
        self.session = {}
        self.executed = []
        self.cancel_calls = 0
        self.closed = False

    async def init_session(self, **kwargs):
        self.init_calls += 1
        self.session = kwargs

    async def execute(self, sql, binds):
        self.executed.append((sql, list(binds)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, BaseException):
                raise item
            return list(item)
        return list(self.rows)

    async def cancel(self):
        self.cancel_calls += 1
        if self.cancel_delay:
            await asyncio.sleep(self.cancel_delay)

    async def close(self):
        self.closed = True
        if self.close_error:
            raise self.close_error


class FakeConnector:
    def __init__(self, script=None, **conn_kwargs):
        self.script = script if script is not None else []
        self.conn_kwargs = conn_kwargs
        self.created = []

    async def __call__(self):
        conn = FakeConnection(script=self.script, **self.conn_kwargs)
        self.created.append(conn)
        return conn


class StubPool:
    """Records statements handed to it by the pacing service."""

    def __init__(self, rows=None, error=None, probe_outcome=None):
        self.rows = rows or []
        self.error = error
        self.probe_outcome = probe_outcome
        self.calls = []
        self.probe_calls = []

    async def execute(self, sql, binds=None):
        self.calls.append((sql, list(binds or [])))
        if self.error:
            raise self.error
        return [dict(r) for r in self.rows]

    async def try_execute(self, sql, binds=None):
        self.probe_calls.append((sql, list(binds or [])))
        return self.probe_outcome


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
