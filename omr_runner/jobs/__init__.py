"""Filesystem-backed OMR jobs keyed by checksum."""
