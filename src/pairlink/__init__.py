"""pairlink - pair a controlling client with an agent over an untrusted relay."""

__version__ = "0.1.0"
