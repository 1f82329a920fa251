"""station_auth - Accounts, roles and event registration for the community radio backend."""

__version__ = "0.1.0"
