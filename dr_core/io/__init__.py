"""
I/O Module: Latest-value slots for asynchronous input streams.

The velocity tick is the only synchronization point; every other stream
overwrites a slot guarded by a lock.
"""

from .input_slots import LatestValue, InputSnapshot, SensorInputs

__all__ = ['LatestValue', 'InputSnapshot', 'SensorInputs']
