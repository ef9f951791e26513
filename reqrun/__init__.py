"""reqrun - run named HTTP requests from a JSON descriptor."""

__version__ = "0.1.0"
