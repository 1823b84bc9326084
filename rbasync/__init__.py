"""Two-way sync of IBM Runbook Automation runbooks with a local directory."""

__version__ = "0.1.0"
