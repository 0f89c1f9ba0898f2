"""Large file detection and Git LFS history rewriting."""
