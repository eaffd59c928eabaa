"""LiveSync - keeps a viewer session in sync with a live broadcast."""

__version__ = "0.1.0"
