"""PGP Guardian: PGP key rings, signing and HKP key exchange."""

__version__ = "0.1.0"
