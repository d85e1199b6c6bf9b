"""Pattern farm: fetch games, checkpoint them, and score baseline vs. hybrid predictions."""

__version__ = "0.1.0"
