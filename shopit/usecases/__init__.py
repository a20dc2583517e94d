"""Workflow orchestrators sitting between the HTTP handlers and the repositories."""
