"""Bridge instructions and withdrawal relayer for an XRPL EVM sidechain."""
