import logging
from math import ceil

from migen import If, Module, FSM, Signal, NextState, NextValue, Cat, C, Mux, ResetInserter
from litex.soc.interconnect import stream
from litex.gen.genlib.misc import WaitTimer
from litex.gen.common import colorer

from i2cengine.core.i2c import (I2cPads, I2cTimer, I2cBusMonitor, I2cShifter, I2cClockArbiter,
    i2c_byte_layout, i2c_request_layout)


logger = logging.getLogger(__name__)

CONTROLLER_STATES = [
    "IDLE",
    "GENERATE_START",
    "ADDRESS_PHASE",
    "DATA_PHASE_TX",
    "DATA_PHASE_RX",
    "ACK_PHASE_TX",
    "ACK_PHASE_RX",
    "GENERATE_STOP",
    "ARBITRATION_LOST",
    "FATAL_ERROR",
    "AWAIT_ADDRESS_MATCH",
    "SLAVE_ACK_ADDRESS",
    "SLAVE_DATA_TX",
    "SLAVE_DATA_RX",
    "SLAVE_SEND_ACK",
    "SLAVE_WAIT_ACK",
]

MASTER_BYTE_STATES = ["ADDRESS_PHASE", "DATA_PHASE_TX", "DATA_PHASE_RX", "ACK_PHASE_TX", "ACK_PHASE_RX"]
SLAVE_STATES = CONTROLLER_STATES[CONTROLLER_STATES.index("AWAIT_ADDRESS_MATCH"):]

# (max frequency, min SCL low time, min SCL high time)
I2C_MODES = [
    (100E3, 4.7E-6, 4.0E-6),
    (400E3, 1.3E-6, 0.6E-6),
    (1E6, 0.5E-6, 0.26E-6),
]

I2C_MIN_HALF_PERIOD = 2
I2C_MAX_HALF_PERIOD = 2**16 - 1


def _cycles(t):
    return int(ceil(round(t, 6)))


def i2c_timings(sys_clk, fscl):
    """Return (t_low, t_high) in `sys_clk` cycles to run SCL at `fscl`.

    The low / high split follows the minimum times of the matching bus mode.
    """
    if sys_clk <= 0 or fscl <= 0:
        raise ValueError(f"invalid clocks sys_clk={sys_clk} fscl={fscl}")
    for fmax, low_min, high_min in I2C_MODES:
        if fscl <= fmax:
            break
    period = _cycles(sys_clk / fscl)
    t_low = max(_cycles(low_min * sys_clk), _cycles(period * low_min / (low_min + high_min)))
    t_high = max(_cycles(high_min * sys_clk), period - t_low)
    if min(t_low, t_high) < I2C_MIN_HALF_PERIOD:
        logger.warning("SCL half periods clamped to {} cycles: {} is too slow for {}".format(
            colorer(I2C_MIN_HALF_PERIOD, color="red"),
            colorer(f"{sys_clk / 1E6:.3f}MHz"),
            colorer(f"{fscl / 1E3:.0f}kHz")))
        t_low = max(t_low, I2C_MIN_HALF_PERIOD)
        t_high = max(t_high, I2C_MIN_HALF_PERIOD)
    if max(t_low, t_high) > I2C_MAX_HALF_PERIOD:
        raise ValueError(f"{fscl / 1E3:.3f}kHz is too slow for {sys_clk / 1E6:.3f}MHz: SCL half "
                         f"periods ({t_low}, {t_high}) don't fit in 16 bits")
    return t_low, t_high


class I2cConfig:
    """Runtime configuration, owned by the register bank.

    - enable: when cleared, the controller is held in reset
    - master, slave: roles the controller may take
    - t_low, t_high: SCL half periods, in cycles
    - address, address10: local slave address and its width
    - watchdog: reset the controller when SCL is stuck low during a transfer
    """
    def __init__(self, t_low=2, t_high=2, address=0, address10=False, master=True, slave=False,
                 watchdog=False):
        for name, t in [("t_low", t_low), ("t_high", t_high)]:
            if not I2C_MIN_HALF_PERIOD <= t <= I2C_MAX_HALF_PERIOD:
                raise ValueError(f"{name}={t} cycles out of range [{I2C_MIN_HALF_PERIOD}, "
                                 f"{I2C_MAX_HALF_PERIOD}]")
        if not 0 <= address < (1 << (10 if address10 else 7)):
            raise ValueError(f"slave address 0x{address:X} doesn't fit in "
                             f"{10 if address10 else 7} bits")
        self.enable = Signal(reset=1)
        self.master = Signal(reset=int(master))
        self.slave = Signal(reset=int(slave))
        self.t_low = Signal(16, reset=t_low)
        self.t_high = Signal(16, reset=t_high)
        self.address = Signal(10, reset=address)
        self.address10 = Signal(reset=int(address10))
        self.watchdog = Signal(reset=int(watchdog))


class I2cStatus(Module):
    """Latch the engine events until they are cleared.

    For each event `x`: `x` is the one cycle pulse input, `x_flag` stays set until `x_clear`.
    A pulse wins over a simultaneous clear.
    """
    events = [
        "done",
        "byte_received",
        "arb_lost",
        "nack",
        "bus_error",
        "start",
        "stop",
        "address_match",
        "timeout",
    ]

    def __init__(self):
        # inputs
        self.irq_mask = Signal(len(self.events))
        self.busy = Signal()
        self.bus_busy = Signal()
        self.lost = Signal()
        self.lost_index = Signal(max=9)
        self.state = Signal(max=len(CONTROLLER_STATES))

        # outputs
        self.pending = Signal(len(self.events))
        self.irq = Signal()

        # # #
        flags = []
        for name in self.events:
            pulse = Signal(name=name)
            flag = Signal(name=name + "_flag")
            clear = Signal(name=name + "_clear")
            setattr(self, name, pulse)
            setattr(self, name + "_flag", flag)
            setattr(self, name + "_clear", clear)
            self.sync += If(pulse, flag.eq(1)).Elif(clear, flag.eq(0))
            flags.append(flag)
        self.comb += [
            self.pending.eq(Cat(*flags)),
            self.irq.eq((self.pending & self.irq_mask) != 0),
        ]


class I2cController(Module):
    """I2C master / slave protocol engine.

    The bus lines go through `sda_o`, `scl_o` (0 pulls the line low) and come back through
    `sda_i`, `scl_i`. `monitor` must observe the same lines; it is not owned by the controller so
    that a controller reset doesn't lose track of the bus.

    Master transfers are queued on `request` (one direction per request). Bytes to write are
    taken from `master_sink`, bytes read are pushed to `master_source`. A request with `stop`
    cleared keeps the bus, and the next request starts with a repeated START.

    When the slave role is enabled, bytes written by a remote master are pushed to
    `slave_source` (`first` marks the first byte after the address) and bytes it reads are
    taken from `slave_sink`. SCL is stretched while these streams aren't ready.

    Events (one cycle pulses): done, byte_received, arb_lost, nack, bus_error, address_match.
    """
    def __init__(self, monitor, config):
        # inputs
        self.request = request = stream.Endpoint(i2c_request_layout)
        self.master_sink = master_sink = stream.Endpoint(i2c_byte_layout)
        self.slave_sink = slave_sink = stream.Endpoint(i2c_byte_layout)
        self.scl_i = scl_i = Signal(reset=1)
        self.sda_i = sda_i = Signal(reset=1)

        # outputs
        self.master_source = master_source = stream.Endpoint(i2c_byte_layout)
        self.slave_source = slave_source = stream.Endpoint(i2c_byte_layout)
        self.scl_o = Signal(reset=1)
        self.sda_o = sda_o = Signal(reset=1)
        self.state = Signal(max=len(CONTROLLER_STATES))
        self.busy = Signal()
        self.contending = Signal()
        self.lost = lost = Signal()
        self.lost_index = lost_index = Signal(max=9)
        self.presented = presented = Signal()

        # events
        self.done = done = Signal()
        self.byte_received = byte_received = Signal()
        self.arb_lost = arb_lost = Signal()
        self.nack = nack = Signal()
        self.bus_error = bus_error = Signal()
        self.address_match = address_match = Signal()

        # # #
        self.submodules.shifter = shifter = I2cShifter()
        self.submodules.arbiter = arbiter = I2cClockArbiter()
        self.submodules.timer = timer = I2cTimer()
        self.comb += [
            arbiter.scl_i.eq(scl_i),
            arbiter.t_low.eq(config.t_low),
            arbiter.t_high.eq(config.t_high),
            self.scl_o.eq(arbiter.scl_o),
            shifter.bit_in.eq(sda_i),
            timer.period.eq(config.t_high),
        ]

        # SDA is only changed through these
        present = Signal()
        bit = Signal()
        unpresent = Signal()
        sda_set = Signal()
        sda_value = Signal()
        self.sync += [
            If(sda_set,
                sda_o.eq(sda_value),
            ).Elif(present,
                sda_o.eq(bit),
            ),
            If(unpresent | monitor.scl_rise,
                presented.eq(0),
            ).Elif(present,
                presented.eq(1),
            ),
        ]

        # shifter loads
        data_load = Signal()
        data_value = Signal(8)
        data_tx = Signal()
        frame_load = Signal()
        self.comb += [
            shifter.load.eq(data_load | frame_load),
            shifter.load_data.eq(Mux(frame_load, 0xFF, data_value)),
            shifter.load_tx.eq(~frame_load & data_tx),
        ]

        # current transfer
        address = Signal(10)
        address10 = Signal()
        read = Signal()
        stop = Signal()
        remaining = Signal(16)
        addr_step = Signal(2)
        step = Signal(3)
        restart10 = Signal()
        pushed = Signal()
        follow = Signal()

        # slave side
        passive = Signal()
        slave_read = Signal()
        hi_pending = Signal()
        addressed10 = Signal()
        slave_first = Signal()

        addr_byte = Signal(8)
        self.comb += [
            If(addr_step == 2,
                addr_byte.eq(Cat(C(1, 1), address[8:10], C(0b11110, 5))),
            ).Elif(address10,
                addr_byte.eq(Cat(C(0, 1), address[8:10], C(0b11110, 5))),
            ).Else(
                addr_byte.eq(Cat(read, address[0:7])),
            ),
        ]

        rx = shifter.data
        header = Signal()
        match7 = Signal()
        match10_write = Signal()
        match10_read = Signal()
        match10_low = Signal()
        self.comb += [
            header.eq(config.address10 & ~hi_pending & (rx[3:8] == 0b11110) &
                      (rx[1:3] == config.address[8:10])),
            match7.eq(~config.address10 & (rx[1:8] == config.address[0:7])),
            match10_write.eq(header & ~rx[0]),
            match10_read.eq(header & rx[0] & addressed10),
            match10_low.eq(config.address10 & hi_pending & (rx == config.address[0:8])),
        ]

        def load_byte(value, tx):
            return [data_load.eq(1), data_value.eq(value), data_tx.eq(tx)]

        def master_bit(value, ready=1):
            return [
                bit.eq(value),
                arbiter.enable.eq(1),
                arbiter.stretch.eq(~presented),
                If(arbiter.setup & ~presented & ready,
                    present.eq(1),
                ),
            ]

        def slave_bit(value, ready=1):
            return [
                bit.eq(value),
                arbiter.stretch.eq(~scl_i & ~presented & ~ready),
                If(~scl_i & ~presented & ready,
                    present.eq(1),
                ),
            ]

        def accept():
            return [
                request.ready.eq(1),
                NextValue(address, request.address),
                NextValue(address10, request.address10),
                NextValue(read, request.read),
                NextValue(stop, request.stop),
                NextValue(remaining, Mux(request.read & (request.length == 0), 1, request.length)),
                NextValue(addr_step, 0),
            ]

        def lose(first_byte, index=None):
            return [
                arb_lost.eq(1),
                NextValue(lost, 1),
                NextValue(lost_index, shifter.index if index is None else index),
                NextValue(follow, first_byte & config.slave),
                NextState("ARBITRATION_LOST"),
            ]

        def frame_start():
            return [
                frame_load.eq(1),
                sda_set.eq(1),
                sda_value.eq(1),
                NextValue(passive, 0),
                NextValue(hi_pending, 0),
                NextState("AWAIT_ADDRESS_MATCH"),
            ]

        def finish():
            return [
                done.eq(1),
                If(stop,
                    NextValue(step, 0),
                    NextState("GENERATE_STOP"),
                ).Else(
                    NextValue(step, 3),
                    NextState("GENERATE_START"),
                ),
            ]

        def generate_stop():
            return [
                unpresent.eq(1),
                NextValue(step, 0),
                NextState("GENERATE_STOP"),
            ]

        self.submodules.fsm = fsm = FSM("IDLE")
        fsm.act("IDLE",
            shifter.abort.eq(1),
            sda_set.eq(1),
            sda_value.eq(1),
            NextValue(lost, 0),
            NextValue(addressed10, 0),
            If(config.slave & monitor.start,
                frame_start(),
            ).Elif(config.master & request.valid & ~monitor.busy & monitor.idle,
                NextValue(step, 0),
                NextState("GENERATE_START"),
            ),
        )
        fsm.act("GENERATE_START",
            If(step == 0,
                # bus free time
                timer.wait.eq(1),
                If(monitor.start & config.slave,
                    frame_start(),
                ).Elif(monitor.busy | ~monitor.idle | ~request.valid,
                    NextState("IDLE"),
                ).Elif(timer.done,
                    accept(),
                    NextValue(step, 1),
                ),
            ).Elif(step == 1,
                arbiter.enable.eq(1),
                If(monitor.start | ~scl_i,
                    # somebody else started first
                    arb_lost.eq(1),
                    NextValue(lost, 1),
                    NextValue(lost_index, 0),
                    NextValue(follow, 0),
                    If(monitor.start & config.slave,
                        frame_start(),
                    ).Else(
                        NextState("ARBITRATION_LOST"),
                    ),
                ).Elif(arbiter.mid_high,
                    sda_set.eq(1),
                    sda_value.eq(0),
                    NextValue(step, 2),
                ),
            ).Elif(step == 2,
                arbiter.enable.eq(1),
                If(monitor.scl_fall,
                    load_byte(addr_byte, 1),
                    unpresent.eq(1),
                    NextState("ADDRESS_PHASE"),
                ),
            ).Elif(step == 3,
                # bus held between two requests, SCL low
                master_bit(1, restart10 | request.valid),
                If(arbiter.setup & ~presented & (restart10 | request.valid),
                    If(~restart10,
                        accept(),
                    ),
                    NextValue(restart10, 0),
                    NextValue(step, 4),
                ),
            ).Else(
                # repeated START
                arbiter.enable.eq(1),
                If(monitor.scl_rise & ~sda_i,
                    lose(0, index=0),
                ).Elif(arbiter.mid_high,
                    sda_set.eq(1),
                    sda_value.eq(0),
                    NextValue(step, 2),
                ),
            ),
        )
        fsm.act("ADDRESS_PHASE",
            master_bit(shifter.bit_out),
            If(monitor.scl_rise,
                shifter.shift.eq(1),
                If(shifter.mismatch,
                    lose(addr_step == 0),
                ),
            ),
            If(shifter.done,
                If(shifter.ack_in,
                    nack.eq(1),
                    generate_stop(),
                ).Elif(address10 & (addr_step == 0),
                    NextValue(addr_step, 1),
                    load_byte(address[0:8], 1),
                ).Elif(address10 & read & (addr_step == 1),
                    NextValue(addr_step, 2),
                    NextValue(restart10, 1),
                    NextValue(step, 3),
                    NextState("GENERATE_START"),
                ).Elif(read,
                    NextState("DATA_PHASE_RX"),
                ).Elif(remaining == 0,
                    finish(),
                ).Else(
                    NextState("DATA_PHASE_TX"),
                ),
            ),
        )
        fsm.act("DATA_PHASE_TX",
            If(shifter.idle & master_sink.valid,
                master_sink.ready.eq(1),
                load_byte(master_sink.data, 1),
                NextValue(remaining, remaining - 1),
            ),
            master_bit(shifter.bit_out, ~shifter.idle),
            If(monitor.scl_rise,
                shifter.shift.eq(1),
                If(shifter.mismatch,
                    lose(0),
                ).Elif(shifter.index == 7,
                    NextState("ACK_PHASE_TX"),
                ),
            ),
        )
        fsm.act("ACK_PHASE_TX",
            master_bit(1),
            If(monitor.scl_rise,
                shifter.shift.eq(1),
            ),
            If(shifter.done,
                If(shifter.ack_in,
                    nack.eq(1),
                    generate_stop(),
                ).Elif(remaining == 0,
                    finish(),
                ).Else(
                    NextState("DATA_PHASE_TX"),
                ),
            ),
        )
        fsm.act("DATA_PHASE_RX",
            If(shifter.idle,
                load_byte(0xFF, 0),
            ),
            master_bit(shifter.bit_out, ~shifter.idle),
            If(monitor.scl_rise,
                shifter.shift.eq(1),
                If(shifter.index == 7,
                    NextValue(pushed, 0),
                    NextState("ACK_PHASE_RX"),
                ),
            ),
        )
        fsm.act("ACK_PHASE_RX",
            master_source.valid.eq(~pushed),
            master_source.data.eq(shifter.data),
            master_source.last.eq(remaining == 1),
            If(master_source.valid & master_source.ready,
                byte_received.eq(1),
                NextValue(pushed, 1),
            ),
            # NACK the last byte
            shifter.ack.eq(remaining == 1),
            master_bit(shifter.bit_out, pushed),
            If(monitor.scl_rise,
                shifter.shift.eq(1),
            ),
            If(shifter.done,
                NextValue(remaining, remaining - 1),
                If(remaining == 1,
                    finish(),
                ).Else(
                    NextState("DATA_PHASE_RX"),
                ),
            ),
        )
        fsm.act("GENERATE_STOP",
            If(step == 0,
                master_bit(0),
                If(presented,
                    NextValue(step, 1),
                ),
            ).Elif(step == 1,
                If(monitor.scl_rise,
                    NextValue(step, 2),
                ),
            ).Elif(step == 2,
                timer.wait.eq(1),
                If(timer.done,
                    sda_set.eq(1),
                    sda_value.eq(1),
                    NextValue(step, 3),
                ),
            ).Else(
                If(monitor.stop | (~monitor.busy & monitor.idle),
                    NextState("IDLE"),
                ),
            ),
        )
        fsm.act("ARBITRATION_LOST",
            sda_set.eq(1),
            sda_value.eq(1),
            If(follow,
                # still listening to the address, we might be the target
                If(monitor.scl_rise & ~shifter.idle & (shifter.index != 8),
                    shifter.shift.eq(1),
                ),
                If(~shifter.idle & (shifter.index == 8),
                    NextValue(follow, 0),
                    NextValue(passive, 0),
                    NextValue(hi_pending, 0),
                    NextState("AWAIT_ADDRESS_MATCH"),
                ),
            ),
            If(monitor.start & config.slave,
                frame_start(),
            ).Elif(monitor.stop | (~monitor.busy & monitor.idle),
                NextState("IDLE"),
            ),
        )
        fsm.act("FATAL_ERROR",
            sda_set.eq(1),
            sda_value.eq(1),
        )
        fsm.act("AWAIT_ADDRESS_MATCH",
            If(~passive,
                If(monitor.scl_rise & ~shifter.idle & (shifter.index != 8),
                    shifter.shift.eq(1),
                ),
                If(~shifter.idle & (shifter.index == 8),
                    If(match7 | match10_read,
                        address_match.eq(1),
                        NextValue(slave_read, rx[0]),
                        NextState("SLAVE_ACK_ADDRESS"),
                    ).Elif(match10_write,
                        NextValue(hi_pending, 1),
                        NextValue(addressed10, 0),
                        NextValue(slave_read, 0),
                        NextState("SLAVE_ACK_ADDRESS"),
                    ).Elif(match10_low,
                        address_match.eq(1),
                        NextValue(hi_pending, 0),
                        NextValue(addressed10, 1),
                        NextValue(slave_read, 0),
                        NextState("SLAVE_ACK_ADDRESS"),
                    ).Else(
                        NextValue(passive, 1),
                    ),
                ),
            ),
        )
        fsm.act("SLAVE_ACK_ADDRESS",
            shifter.ack.eq(0),
            slave_bit(0),
            If(monitor.scl_rise & ~shifter.idle,
                shifter.shift.eq(1),
            ),
            If(shifter.done,
                If(hi_pending,
                    load_byte(0xFF, 0),
                    NextState("AWAIT_ADDRESS_MATCH"),
                ).Elif(slave_read,
                    NextState("SLAVE_DATA_TX"),
                ).Else(
                    NextValue(slave_first, 1),
                    NextState("SLAVE_DATA_RX"),
                ),
            ),
        )
        fsm.act("SLAVE_DATA_TX",
            If(shifter.idle & slave_sink.valid,
                slave_sink.ready.eq(1),
                load_byte(slave_sink.data, 1),
            ),
            slave_bit(shifter.bit_out, ~shifter.idle),
            If(monitor.scl_rise & ~shifter.idle,
                shifter.shift.eq(1),
                If(shifter.mismatch,
                    # another slave answers with different data
                    arb_lost.eq(1),
                    sda_set.eq(1),
                    sda_value.eq(1),
                    NextValue(passive, 1),
                    NextState("AWAIT_ADDRESS_MATCH"),
                ).Elif(shifter.index == 7,
                    NextState("SLAVE_WAIT_ACK"),
                ),
            ),
        )
        fsm.act("SLAVE_WAIT_ACK",
            slave_bit(1),
            If(monitor.scl_rise & ~shifter.idle,
                shifter.shift.eq(1),
            ),
            If(shifter.done,
                If(shifter.ack_in,
                    NextValue(passive, 1),
                    NextState("AWAIT_ADDRESS_MATCH"),
                ).Else(
                    NextState("SLAVE_DATA_TX"),
                ),
            ),
        )
        fsm.act("SLAVE_DATA_RX",
            If(shifter.idle,
                load_byte(0xFF, 0),
            ),
            slave_bit(1, ~shifter.idle),
            If(monitor.scl_rise & ~shifter.idle,
                shifter.shift.eq(1),
                If(shifter.index == 7,
                    NextValue(pushed, 0),
                    NextState("SLAVE_SEND_ACK"),
                ),
            ),
        )
        fsm.act("SLAVE_SEND_ACK",
            slave_source.valid.eq(~pushed),
            slave_source.data.eq(shifter.data),
            slave_source.first.eq(slave_first),
            If(slave_source.valid & slave_source.ready,
                byte_received.eq(1),
                NextValue(pushed, 1),
                NextValue(slave_first, 0),
            ),
            shifter.ack.eq(0),
            slave_bit(0, pushed),
            If(monitor.scl_rise & ~shifter.idle,
                shifter.shift.eq(1),
            ),
            If(shifter.done,
                NextState("SLAVE_DATA_RX"),
            ),
        )

        # bus errors
        for name in MASTER_BYTE_STATES:
            fsm.act(name,
                If(monitor.illegal,
                    bus_error.eq(1),
                    generate_stop(),
                ),
            )
        fsm.act("GENERATE_START",
            If(monitor.illegal & (step >= 2),
                bus_error.eq(1),
                generate_stop(),
            ),
        )

        # a remote master (re)starts or ends the transfer
        for name in SLAVE_STATES:
            fsm.act(name,
                If(monitor.start,
                    frame_start(),
                ).Elif(monitor.stop,
                    sda_set.eq(1),
                    sda_value.eq(1),
                    NextState("IDLE"),
                ).Elif(monitor.illegal,
                    bus_error.eq(1),
                    sda_set.eq(1),
                    sda_value.eq(1),
                    NextState("IDLE"),
                ),
            )

        # internal consistency: a byte is only loaded at a byte boundary, and the master
        # never clocks a bit without a byte in flight
        fatal = Signal()
        in_byte = Signal()
        self.comb += [
            in_byte.eq(Cat(*[fsm.ongoing(name) for name in MASTER_BYTE_STATES]) != 0),
            fatal.eq((data_load & shifter.busy) | (in_byte & shifter.shift & shifter.idle)),
        ]
        for name in CONTROLLER_STATES:
            if name != "FATAL_ERROR":
                fsm.act(name,
                    If(fatal,
                        NextState("FATAL_ERROR"),
                    ),
                )

        self.comb += [
            self.busy.eq(~fsm.ongoing("IDLE")),
            self.contending.eq(fsm.ongoing("ADDRESS_PHASE") | fsm.ongoing("DATA_PHASE_TX")),
        ]
        for i, name in enumerate(CONTROLLER_STATES):
            self.comb += If(fsm.ongoing(name), self.state.eq(i))


class I2cEngine(Module):
    """I2C controller with its bus monitor, status latches and optional pads.

    Parameters:
    - pads: None, or a record with `sda` and `scl` inout pins
    - sys_clk: frequency of the `sys` clock domain
    - fscl: default SCL frequency
    - address, address10: default slave address
    - master, slave: default roles
    - timeout: None, or time (seconds) SCL can be held low during a transfer before the
      controller is reset. Enabled at runtime by `config.watchdog`.

    Inputs:
    - reset: return the controller to IDLE and release both lines on the next cycle
    - scl_i, sda_i: bus lines, when `pads` is None

    Outputs:
    - scl_o, sda_o: 0 pulls the line low
    """
    def __init__(self, pads=None, sys_clk=100E6, fscl=100E3, address=0, address10=False,
                 master=True, slave=False, timeout=None):
        t_low, t_high = i2c_timings(sys_clk, fscl)
        logger.info("I2C SCL: {} (low {} / high {} cycles)".format(
            colorer(f"{sys_clk / (t_low + t_high) / 1E3:.1f}kHz"),
            colorer(t_low),
            colorer(t_high)))
        self.config = config = I2cConfig(t_low, t_high, address, address10, master, slave,
                                         timeout is not None)

        # inputs
        self.reset = Signal()
        self.scl_i = Signal(reset=1)
        self.sda_i = Signal(reset=1)

        # outputs
        self.scl_o = Signal(reset=1)
        self.sda_o = Signal(reset=1)

        # # #
        self.submodules.monitor = monitor = I2cBusMonitor()
        self.submodules.status = status = I2cStatus()
        self.submodules.controller = controller = ResetInserter()(I2cController(monitor, config))

        self.request = controller.request
        self.master_sink = controller.master_sink
        self.master_source = controller.master_source
        self.slave_sink = controller.slave_sink
        self.slave_source = controller.slave_source

        if pads is not None:
            self.submodules.pads = pads_tri = I2cPads(pads)
            self.comb += [
                pads_tri.sda_o.eq(self.sda_o),
                pads_tri.scl_o.eq(self.scl_o),
                self.sda_i.eq(pads_tri.sda_i),
                self.scl_i.eq(pads_tri.scl_i),
            ]

        watchdog_fire = Signal()
        if timeout is not None:
            cycles = int(sys_clk * timeout)
            logger.info("I2C watchdog: {} cycles".format(colorer(cycles)))
            self.submodules.watchdog = watchdog = WaitTimer(cycles)
            self.comb += [
                watchdog.wait.eq(config.watchdog & controller.busy & ~self.scl_i),
                watchdog_fire.eq(watchdog.wait & watchdog.done),
            ]

        self.comb += [
            controller.reset.eq(self.reset | ~config.enable | watchdog_fire),
            monitor.idle_period.eq(config.t_low + config.t_high),
            monitor.scl_i.eq(self.scl_i),
            monitor.sda_i.eq(self.sda_i),
            controller.scl_i.eq(self.scl_i),
            controller.sda_i.eq(self.sda_i),
            self.scl_o.eq(controller.scl_o),
            self.sda_o.eq(controller.sda_o),

            status.done.eq(controller.done),
            status.byte_received.eq(controller.byte_received),
            status.arb_lost.eq(controller.arb_lost),
            status.nack.eq(controller.nack),
            status.bus_error.eq(controller.bus_error),
            status.start.eq(monitor.start),
            status.stop.eq(monitor.stop),
            status.address_match.eq(controller.address_match),
            status.timeout.eq(watchdog_fire),
            status.busy.eq(controller.busy),
            status.bus_busy.eq(monitor.busy),
            status.lost.eq(controller.lost),
            status.lost_index.eq(controller.lost_index),
            status.state.eq(controller.state),
        ]
