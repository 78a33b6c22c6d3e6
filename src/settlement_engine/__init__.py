"""Final settlement (solde de tout compte) engine."""

__version__ = "0.1.0"
