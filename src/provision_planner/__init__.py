"""Provision request planner for service template provisioning tasks."""

__version__ = "0.1.0"
