"""HTTP API for the Sheet Invoicer service."""
