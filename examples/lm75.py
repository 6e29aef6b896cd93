from i2cengine.core.models import I2cDevice, I2cTransaction


sensor = I2cDevice(0x48)

transactions = [
    I2cTransaction(sensor, write=[0x01, 0b00000100]),  # OS active high
    I2cTransaction(sensor, write=[0x02, 75, 0]),  # OS inactive when temp falls under 75°C
    I2cTransaction(sensor, write=[0x03, 80, 0]),  # OS active when temp rises above 80°C
    I2cTransaction(sensor, write=[0x00], read=2),
]

for t in transactions:
    print(f"{t}")
    for r in t.requests():
        print(f"  {r}")
