#!/usr/bin/env python3

import argparse
from migen import If, Module, Signal, FSM, NextState, NextValue
from migen.build.generic_platform import Subsignal, Pins
from migen.build.platforms.icestick import Platform
from litex.gen.genlib.misc import WaitTimer
from i2cengine.core.i2c_controller import I2cEngine


_ios = [
    ("i2c", 0,
        Subsignal("sda", Pins("PMOD:3")),
        Subsignal("scl", Pins("PMOD:2")),
    ),
]

LM75_ADDRESS = 0x48


class Top(Module):
    """Read the LM75 temperature every 100ms, show its 5 MSBs on the LEDs"""
    def __init__(self, platform, sys_clk_freq=12E6):
        platform.add_extension(_ios)

        self.submodules.i2c = i2c = I2cEngine(platform.request("i2c"), sys_clk_freq, 100E3,
                                              timeout=10E-3)
        self.submodules.period = period = WaitTimer(int(sys_clk_freq * 0.1))

        temperature = Signal(8)
        leds = [platform.request("user_led", i) for i in range(5)]
        self.comb += [leds[i].eq(temperature[3 + i]) for i in range(5)]

        self.submodules.fsm = fsm = FSM("WAIT")
        fsm.act("WAIT",
            period.wait.eq(1),
            If(period.done,
                NextState("POINTER"),
            ),
        )
        # temperature register, then a repeated START to read it
        fsm.act("POINTER",
            i2c.request.valid.eq(1),
            i2c.request.address.eq(LM75_ADDRESS),
            i2c.request.length.eq(1),
            If(i2c.request.ready,
                NextState("WRITE"),
            ),
        )
        fsm.act("WRITE",
            i2c.master_sink.valid.eq(1),
            i2c.master_sink.data.eq(0x00),
            If(i2c.master_sink.ready,
                NextState("READ"),
            ),
        )
        fsm.act("READ",
            i2c.request.valid.eq(1),
            i2c.request.address.eq(LM75_ADDRESS),
            i2c.request.read.eq(1),
            i2c.request.length.eq(2),
            i2c.request.stop.eq(1),
            If(i2c.request.ready,
                NextState("MSB"),
            ),
        )
        fsm.act("MSB",
            i2c.master_source.ready.eq(1),
            If(i2c.master_source.valid,
                NextValue(temperature, i2c.master_source.data),
                NextState("LSB"),
            ),
        )
        fsm.act("LSB",
            i2c.master_source.ready.eq(1),
            If(i2c.master_source.valid,
                NextState("WAIT"),
            ),
        )
        # a failed transfer never delivers its bytes
        failed = i2c.status.nack | i2c.status.arb_lost | i2c.status.timeout
        for state in ["POINTER", "WRITE", "READ", "MSB", "LSB"]:
            fsm.act(state, If(failed, NextState("WAIT")))


if __name__ == '__main__':
    parser = argparse.ArgumentParser("Icestick LM75 demo")
    parser.add_argument("--build", "-b", action="store_true", help="build the FPGA")
    parser.add_argument("--flash", "-f", action="store_true", help="flash the FPGA")
    args = parser.parse_args()

    plat = Platform()

    soc = Top(platform=plat)

    if args.build:
        plat.build(soc, build_dir="build/icestick")
    if args.flash:
        plat.create_programmer().flash(0, "build/icestick/top.bin")
