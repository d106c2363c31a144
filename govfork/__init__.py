"""govfork — fast-forward governance proposals on disposable Tenderly forks."""

__version__ = "0.1.0"
