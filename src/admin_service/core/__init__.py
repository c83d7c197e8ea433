"""Error taxonomy shared by all layers."""
