"""Key operations orchestrated over rings and signers."""
