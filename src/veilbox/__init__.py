"""VeilBox: sing-box configuration synthesis and engine supervision."""

__version__ = "0.1.0"
