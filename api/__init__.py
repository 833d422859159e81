"""HTTP surface for candidate lifecycle and persistence control."""
