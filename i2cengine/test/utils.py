from migen import Module, Signal, passive

from i2cengine.core.i2c_controller import CONTROLLER_STATES


@passive
def timeout(timeout):
    """ wait for `timeout` cycles, then raise an exception
    Useful as a global infinite loop protection
    """
    for _ in range(timeout):
        yield
    raise Exception(f"timeout after {timeout} cycles")


def assert_eq_before(signal, value, timeout):
    """Return when `signal`==`value`
    If the assertion wasn't True before `timeout` cycles, raise an exception
    """
    for _ in range(timeout):
        if (yield signal) == value:
            return
        yield
    raise Exception(f"timeout waiting for {signal}=={value} after {timeout} cycles")


def wait_for(signal, value):
    """Wait indefinitely for `signal`==`value`
    """
    while True:
        if (yield signal) == value:
            return
        yield


def wait_state(controller, state, timeout=10000):
    """Wait for `controller` to be in `state` (name from CONTROLLER_STATES)"""
    yield from assert_eq_before(controller.state, CONTROLLER_STATES.index(state), timeout)


def ep_push(ep, data, zero=True, timeout=None):
    """Push data into a stream Endpoint
    If `zero` is True, null all the fields not present in `data`
    """
    if zero:
        for sig, _ in ep.iter_flat():
            if sig is ep.ready:
                continue
            yield sig.eq(0)

    for k, v in data.items():
        yield getattr(ep, k).eq(v)

    if timeout is None:
        timeout = -1

    yield ep.valid.eq(1)
    yield
    while (yield ep.ready) == 0:
        if timeout == 0:
            raise Exception(f"Timeout trying to push {data} into {ep}")
        timeout -= 1
        yield
    yield ep.valid.eq(0)


def ep_pop(ep, expected_data={}, timeout=None):
    """Pop data from a stream Endpoint, return the popped fields
    All (key, value) pairs from `expected_data` are validated equal with the data being pop.
    if `expected_data` is an empty dict, no data is verified
    """
    if timeout is None:
        timeout = -1

    yield ep.ready.eq(1)
    yield
    while (yield ep.valid) == 0:
        if timeout == 0:
            raise Exception(f"Timeout trying to pop from {ep}")
        timeout -= 1
        yield
    popped = {}
    for name in ["data", "first", "last"]:
        popped[name] = (yield getattr(ep, name))
    for k, v in expected_data.items():
        val = popped[k] if k in popped else (yield getattr(ep, k))
        if (val != v):
            raise ValueError(f"Expected {k}={v} but readback value = {val}")
    yield ep.ready.eq(0)
    return popped


class I2cAgent(Module):
    """Bus agent driven from a simulation generator"""
    def __init__(self):
        self.sda_o = Signal(reset=1)
        self.scl_o = Signal(reset=1)
        self.sda_i = Signal(reset=1)
        self.scl_i = Signal(reset=1)


class I2cSlaveModel:
    """Behavioral 7-bit I2C slave, attached to an I2cAgent.

    Bytes written by the master are appended to `received`, bytes read are taken from
    `tx_data` (0xFF once empty). Acknowledges sent by the master are appended to `acks`.
    `stretch` holds SCL low for that many cycles after each falling edge, `stuck_after`
    holds it low forever once that many bytes (address included) have been transferred.
    """
    def __init__(self, agent, address, tx_data=(), ack_address=True, ack_data=True, stretch=0,
                 stuck_after=None):
        self.agent = agent
        self.address = address
        self.tx_data = list(tx_data)
        self.ack_address = ack_address
        self.ack_data = ack_data
        self.stretch = stretch
        self.stuck_after = stuck_after
        self.received = []
        self.acks = []
        self.addressed = 0
        self.starts = 0
        self.stops = 0
        self.bytes = 0

    @passive
    def sim(self):
        a = self.agent
        prev_scl, prev_sda = 1, 1
        mode = None
        read = False
        count = 0
        byte = 0
        hold = 0
        while True:
            scl = (yield a.scl_i)
            sda = (yield a.sda_i)
            if prev_scl and scl and prev_sda and not sda:
                self.starts += 1
                mode, count, byte = "address", 0, 0
                yield a.sda_o.eq(1)
            elif prev_scl and scl and not prev_sda and sda:
                self.stops += 1
                mode = None
                yield a.sda_o.eq(1)
            elif not prev_scl and scl:
                if mode in ["address", "rx"] and count < 8:
                    byte = (byte << 1) | sda
                elif mode == "tx" and count == 8:
                    self.acks.append(sda)
                count += 1
            elif prev_scl and not scl and mode is not None:
                if count == 8:
                    self.bytes += 1
                if mode == "address" and count == 8:
                    if (byte >> 1) == self.address and self.ack_address:
                        self.addressed += 1
                        read = bool(byte & 1)
                        yield a.sda_o.eq(0)
                    else:
                        mode = None
                elif mode == "address" and count == 9:
                    mode, count, byte = ("tx" if read else "rx"), 0, 0
                    yield a.sda_o.eq(1)
                    if read:
                        yield from self._transmit()
                elif mode == "rx" and count == 8:
                    self.received.append(byte)
                    yield a.sda_o.eq(0 if self.ack_data else 1)
                    if not self.ack_data:
                        mode = None
                elif mode == "rx" and count == 9:
                    yield a.sda_o.eq(1)
                    count, byte = 0, 0
                elif mode == "tx" and count < 8:
                    yield a.sda_o.eq((self.current >> (7 - count)) & 1)
                elif mode == "tx" and count == 8:
                    yield a.sda_o.eq(1)
                elif mode == "tx" and count == 9:
                    if self.acks[-1]:
                        mode = None
                    else:
                        count = 0
                        yield from self._transmit()
                if self.stuck_after is not None and self.bytes >= self.stuck_after:
                    hold = -1
                    yield a.scl_o.eq(0)
                elif self.stretch:
                    hold = self.stretch
                    yield a.scl_o.eq(0)
            if hold > 0:
                hold -= 1
                if hold == 0:
                    yield a.scl_o.eq(1)
            prev_scl, prev_sda = scl, sda
            yield

    def _transmit(self):
        self.current = self.tx_data.pop(0) if self.tx_data else 0xFF
        yield self.agent.sda_o.eq((self.current >> 7) & 1)
