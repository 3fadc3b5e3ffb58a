"""Fleet-wide fingerprinting and configuration drift convergence."""

__version__ = "0.1.0"
