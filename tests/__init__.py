"""Test suite for mcpmirror."""
