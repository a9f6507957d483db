"""Runnable entry point."""
