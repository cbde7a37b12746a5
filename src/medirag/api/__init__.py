"""HTTP surface for the medirag query pipeline."""
