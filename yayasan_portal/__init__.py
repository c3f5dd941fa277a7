"""Yayasan member portal: attendance derivations over a hosted backend."""
