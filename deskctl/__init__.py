"""
deskctl - control CLI helpers for the desktop application.

Makes sure every process backing the application (the VM supervisor,
the hardware emulator and the application itself) is gone after a
shutdown or factory reset has been requested.
"""

__version__ = "0.1.0"
