class I2cDevice:
    def __init__(self, address, address_10b=False):
        if not 0 <= address < (1 << (10 if address_10b else 7)):
            raise ValueError(f"address 0x{address:X} doesn't fit in {10 if address_10b else 7} bits")
        self.address = address
        self.address_10b = address_10b

    def raw_address_bytes(self, read=False):
        address = 1 if read else 0
        if self.address_10b:
            address |= ((self.address >> 8) | 0b1111000) << 1
            return [address, self.address & 0xFF]
        return [address | (self.address << 1)]


class I2cTransaction:
    """Write `write` bytes, then read `read` bytes from `device`.

    A transaction doing both is split into two requests joined by a repeated START.
    """
    def __init__(self, device, write=(), read=0, stop=True):
        self.write = list(write)
        self.read = read
        self.device = device
        self.stop = stop

    def requests(self):
        """Fields of the requests to push into the engine `request` endpoint"""
        base = {
            "address": self.device.address,
            "address10": int(self.device.address_10b),
        }
        requests = []
        if self.write or not self.read:
            requests.append(dict(base, read=0, length=len(self.write), stop=0))
        if self.read:
            requests.append(dict(base, read=1, length=self.read, stop=0))
        requests[-1]["stop"] = int(self.stop)
        return requests

    def address_bytes(self):
        """Address bytes seen on the bus, for each request"""
        r = []
        for request in self.requests():
            address = self.device.raw_address_bytes()
            if request["read"]:
                if self.device.address_10b:
                    # header, low byte, repeated START, header with the read bit
                    address += [address[0] | 1]
                else:
                    address = self.device.raw_address_bytes(read=True)
            r.append(address)
        return r

    def __repr__(self):
        write = " W[" + ", ".join(f"0x{b:02X}" for b in self.write) + "]" if len(self.write) else ""
        stop = " P" if self.stop else ""
        if self.read and self.write:
            return f"0x{self.device.address:02X} S{write} S R{self.read}{stop}"
        elif self.read:
            return f"0x{self.device.address:02X} S R{self.read}{stop}"
        else:
            return f"0x{self.device.address:02X} S{write}{stop}"
