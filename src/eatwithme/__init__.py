"""EatWithMe: map-centric food recommendations from influencers."""

__version__ = "0.1.0"
