"""Multi-master device bus protocol: timings, bit-bang transport, packet format and packet manager."""

__version__ = "0.1.0"
__all__ = ["bitbang", "bus", "protocol", "timing"]