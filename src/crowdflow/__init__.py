"""crowdflow: vision-based pedestrian crowd simulation."""
__version__ = "0.1.0"
