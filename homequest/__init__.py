"""homequest - household quest economy backend."""
