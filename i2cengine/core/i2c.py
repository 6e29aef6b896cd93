from functools import reduce
from operator import and_

from migen import If, Module, FSM, Signal, NextState, NextValue, Cat, Mux
from migen.fhdl.specials import Tristate
from migen.genlib.cdc import MultiReg


i2c_byte_layout = [
    ("data", 8),
]

i2c_request_layout = [
    ("address", 10),
    ("address10", 1),
    ("read", 1),
    ("length", 16),
    ("stop", 1),
]

BUS_EVENT_NONE = 0
BUS_EVENT_START = 1
BUS_EVENT_RESTART = 2
BUS_EVENT_STOP = 3
BUS_EVENT_ILLEGAL = 4

ARBITER_STATES = ["DRIVE_HIGH", "DRIVE_LOW", "WAIT_RELEASE", "STRETCH_HOLD"]


class I2cPads(Module):
    """Open-drain pads: the pin is pulled low when the output is 0, else it's an input"""
    def __init__(self, pads):
        # Inputs
        self.sda_o, self.scl_o = Signal(reset=1), Signal(reset=1)

        # Outputs
        self.sda_i, self.scl_i = Signal(reset=1), Signal(reset=1)

        # # #
        sda_i, scl_i = Signal(), Signal()
        self.specials += Tristate(pads.sda, 0, ~self.sda_o, sda_i)
        self.specials += MultiReg(sda_i, self.sda_i, reset=1)
        self.specials += Tristate(pads.scl, 0, ~self.scl_o, scl_i)
        self.specials += MultiReg(scl_i, self.scl_i, reset=1)


class I2cBus(Module):
    """Wired-AND bus shared by several agents.

    Each agent has `sda_o`, `scl_o` outputs and `sda_i`, `scl_i` inputs. A line is high unless
    one of the agents pulls it low.
    """
    def __init__(self, agents):
        self.sda = Signal(reset=1)
        self.scl = Signal(reset=1)

        # # #
        self.comb += [
            self.sda.eq(reduce(and_, [a.sda_o for a in agents])),
            self.scl.eq(reduce(and_, [a.scl_o for a in agents])),
        ]
        for a in agents:
            self.comb += [
                a.sda_i.eq(self.sda),
                a.scl_i.eq(self.scl),
            ]


class I2cTimer(Module):
    """WaitTimer, but with a period that can be changed on the fly.

    `done` is set once `wait` has been held for `period` cycles. Clearing `wait` reloads it.
    """
    def __init__(self, width=16):
        # inputs
        self.period = period = Signal(width)
        self.wait = wait = Signal()

        # outputs
        self.done = done = Signal()

        # # #
        cnt = Signal(width)
        self.comb += done.eq(wait & (cnt == 0))
        self.sync += [
            If(~wait,
                cnt.eq(period),
            ).Elif(cnt != 0,
                cnt.eq(cnt - 1),
            ),
        ]


class I2cBusMonitor(Module):
    """Classify what happens on the bus, one event per cycle.

    Inputs:
    - scl_i, sda_i: observed bus lines
    - idle_period: cycles with both lines high after which a busy bus without STOP is free again

    Outputs:
    - event: one of the BUS_EVENT_* codes
    - start: START or repeated START condition
    - restart: the START happened while the bus was already busy
    - stop: STOP condition
    - illegal: SDA changed while SCL wasn't held low, outside of a START or a STOP
    - scl_rise, scl_fall: SCL edges
    - busy: a START was seen, and neither a STOP nor `idle_period` cycles with both lines high
      since
    - idle: both lines are high
    - free: both lines have been high for more than `idle_period` cycles
    """
    def __init__(self, width=17):
        # inputs
        self.scl_i = scl_i = Signal(reset=1)
        self.sda_i = sda_i = Signal(reset=1)
        self.idle_period = idle_period = Signal(width, reset=2**width - 1)

        # outputs
        self.event = event = Signal(3)
        self.start = start = Signal()
        self.restart = restart = Signal()
        self.stop = stop = Signal()
        self.illegal = illegal = Signal()
        self.scl_rise = scl_rise = Signal()
        self.scl_fall = scl_fall = Signal()
        self.busy = busy = Signal()
        self.idle = idle = Signal()
        self.free = free = Signal()

        # # #
        prev_scl = Signal(reset=1)
        prev_sda = Signal(reset=1)
        scl_high = Signal()
        idle_cnt = Signal(width)
        self.sync += [
            prev_scl.eq(scl_i),
            prev_sda.eq(sda_i),
            If(~idle,
                idle_cnt.eq(0),
            ).Elif(idle_cnt != idle_period,
                idle_cnt.eq(idle_cnt + 1),
            ),
            If(start,
                busy.eq(1),
            ).Elif(stop | free,
                busy.eq(0),
            ),
        ]
        self.comb += [
            scl_high.eq(prev_scl & scl_i),
            If(scl_high & prev_sda & ~sda_i,
                start.eq(1),
                If(busy,
                    restart.eq(1),
                    event.eq(BUS_EVENT_RESTART),
                ).Else(
                    event.eq(BUS_EVENT_START),
                ),
            ).Elif(scl_high & ~prev_sda & sda_i,
                stop.eq(1),
                event.eq(BUS_EVENT_STOP),
            ).Elif((prev_sda != sda_i) & (prev_scl | scl_i),
                illegal.eq(1),
                event.eq(BUS_EVENT_ILLEGAL),
            ),
            scl_rise.eq(~prev_scl & scl_i),
            scl_fall.eq(prev_scl & ~scl_i),
            idle.eq(scl_i & sda_i),
            free.eq(idle & (idle_cnt == idle_period)),
        ]


class I2cShifter(Module):
    """Serialize / deserialize one byte, MSB first, followed by the acknowledge bit.

    Inputs:
    - load: start a new byte from `load_data`, transmitted if `load_tx` is set
    - ack: value presented on the 9th bit
    - shift: sample `bit_in` and move to the next bit
    - abort: drop the byte in flight

    Outputs:
    - bit_out: value to present on SDA for the current bit
    - index: current bit index, 0..8
    - data: byte observed on the bus
    - ack_in: acknowledge bit observed on the bus
    - done: pulsed once the acknowledge bit has been sampled
    - idle: no byte in flight
    - busy: a byte is partially shifted
    - mismatch: SDA was sampled low while this shifter presented a 1 for a data bit
    """
    def __init__(self):
        # inputs
        self.load = load = Signal()
        self.load_data = load_data = Signal(8)
        self.load_tx = load_tx = Signal()
        self.ack = ack = Signal(reset=1)
        self.shift = shift = Signal()
        self.bit_in = bit_in = Signal()
        self.abort = abort = Signal()

        # outputs
        self.bit_out = bit_out = Signal()
        self.index = index = Signal(max=9)
        self.data = data = Signal(8)
        self.tx = tx = Signal()
        self.ack_in = ack_in = Signal(reset=1)
        self.complete = complete = Signal(reset=1)
        self.done = done = Signal()
        self.idle = idle = Signal()
        self.busy = busy = Signal()
        self.mismatch = mismatch = Signal()

        # # #
        self.comb += [
            idle.eq(complete),
            busy.eq(~complete & (index != 0)),
            If(index == 8,
                bit_out.eq(ack),
            ).Else(
                bit_out.eq(Mux(tx, data[7], 1)),
            ),
            mismatch.eq(shift & tx & (index != 8) & data[7] & ~bit_in),
        ]
        self.sync += [
            done.eq(0),
            If(load,
                data.eq(load_data),
                tx.eq(load_tx),
                index.eq(0),
                complete.eq(0),
            ).Elif(abort,
                complete.eq(1),
            ).Elif(shift & ~complete,
                If(index == 8,
                    ack_in.eq(bit_in),
                    complete.eq(1),
                    done.eq(1),
                ).Else(
                    data.eq(Cat(bit_in, data[:7])),
                    index.eq(index + 1),
                ),
            ),
        ]


class I2cClockArbiter(Module):
    """Generate SCL, synchronized with every other device driving it.

    SCL is only ever pulled low: it goes high once everybody released it. In master mode
    (`enable`), it is held high for `t_high` cycles and low for `t_low` cycles. A device pulling
    SCL low during the high phase starts the low phase right away.

    `stretch` keeps SCL low after the low phase has elapsed. When `enable` isn't set, SCL is
    released, but `stretch` still grabs it as soon as it is seen low (slave clock stretching).
    Releasing `stretch` restarts a complete low phase.

    Inputs:
    - enable, stretch
    - t_low, t_high: half periods, in cycles (minimum 2)
    - scl_i: observed SCL

    Outputs:
    - scl_o: 0 when SCL is held low
    - setup: SDA can be changed
    - mid_high: middle of the high phase, for START and STOP conditions
    - rise, fall: SCL is about to be released / pulled low
    - state: index in ARBITER_STATES
    """
    def __init__(self, width=16):
        # inputs
        self.enable = enable = Signal()
        self.stretch = stretch = Signal()
        self.t_low = t_low = Signal(width, reset=2)
        self.t_high = t_high = Signal(width, reset=2)
        self.scl_i = scl_i = Signal(reset=1)

        # outputs
        self.scl_o = scl_o = Signal(reset=1)
        self.setup = setup = Signal()
        self.mid_high = mid_high = Signal()
        self.rise = rise = Signal()
        self.fall = fall = Signal()
        self.state = state = Signal(2)

        # # #
        cnt = Signal(width)
        low_reload = Signal(width)
        high_reload = Signal(width)
        half_low = Signal(width)
        half_high = Signal(width)
        self.comb += [
            low_reload.eq(Mux(t_low > 2, t_low - 1, 1)),
            high_reload.eq(Mux(t_high > 2, t_high - 1, 1)),
            half_low.eq((low_reload + 1) >> 1),
            half_high.eq((high_reload + 1) >> 1),
        ]

        self.submodules.fsm = fsm = FSM("DRIVE_HIGH")
        fsm.act("DRIVE_HIGH",
            If(enable,
                If(~scl_i | (cnt == 0),
                    fall.eq(1),
                    NextValue(cnt, low_reload),
                    NextState("DRIVE_LOW"),
                ).Else(
                    mid_high.eq(cnt == half_high),
                    NextValue(cnt, cnt - 1),
                ),
            ).Else(
                NextValue(cnt, high_reload),
                If(stretch & ~scl_i,
                    NextState("STRETCH_HOLD"),
                ),
            ),
        )
        fsm.act("DRIVE_LOW",
            setup.eq(cnt <= half_low),
            If(cnt == 0,
                If(stretch,
                    NextState("STRETCH_HOLD"),
                ).Else(
                    NextState("WAIT_RELEASE"),
                ),
            ).Else(
                NextValue(cnt, cnt - 1),
            ),
        )
        fsm.act("WAIT_RELEASE",
            If(stretch,
                NextState("STRETCH_HOLD"),
            ).Elif(scl_i,
                rise.eq(1),
                NextValue(cnt, high_reload),
                NextState("DRIVE_HIGH"),
            ),
        )
        fsm.act("STRETCH_HOLD",
            setup.eq(1),
            If(~stretch,
                NextValue(cnt, low_reload),
                NextState("DRIVE_LOW"),
            ),
        )
        low = fsm.ongoing("DRIVE_LOW")
        release = fsm.ongoing("WAIT_RELEASE")
        hold = fsm.ongoing("STRETCH_HOLD")
        self.comb += [
            scl_o.eq(~(low | hold)),
            state.eq(Cat(low | hold, release | hold)),
        ]
