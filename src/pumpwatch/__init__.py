"""PumpWatch - real-time pump.fun token monitor and opportunity scorer."""

__version__ = "0.1.0"
