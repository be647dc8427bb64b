"""Version 1 of the Fleet Registry API."""
