"""tablepurger: bulk purge of time-keyed Azure Table Storage rows."""

__version__ = "0.1.0"
