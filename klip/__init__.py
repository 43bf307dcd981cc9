"""Copy and paste anything over the network: an encrypting client and a clipboard server."""

__version__ = "0.1.0"