"""Native messaging host process: lifecycle, cancellation and wiring."""

from dlphost.host.loop import HostState, HostStats, NativeHost, serve

__all__ = ["HostState", "HostStats", "NativeHost", "serve"]
