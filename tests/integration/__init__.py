"""Integration tests against a real relay on local ports."""
