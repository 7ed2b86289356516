"""Logging and metrics for kubegress."""
