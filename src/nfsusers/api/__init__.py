"""HTTP surface for out-of-process controllers."""
