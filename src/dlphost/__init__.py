"""dlphost: native messaging host for the browser DLP agent."""

__version__ = "0.1.0"
