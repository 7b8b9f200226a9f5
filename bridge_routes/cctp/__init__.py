"""Circle CCTP attestation access for the USDC burn-and-mint routes."""
