"""Order lifecycle and approval workflow core for the artisan marketplace."""

__version__ = "0.1.0"
