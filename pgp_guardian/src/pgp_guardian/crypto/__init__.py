"""Key and signature primitives built on PGPy."""
