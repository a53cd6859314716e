"""Search services exposed to presentation layers."""
