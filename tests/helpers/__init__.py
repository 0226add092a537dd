"""Test helpers shared across graphmend test modules."""
