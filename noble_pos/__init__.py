"""Noble Footwear point of sale and inventory back office."""

__version__ = "1.0.0"
