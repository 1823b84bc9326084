"""
RBA (Runbook Automation) REST API namespace.

Contains the HTTP client used for listing, fetching, creating and patching
runbooks.
"""
