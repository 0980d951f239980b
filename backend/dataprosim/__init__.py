"""DataProSim backend: gamified data-science simulation API."""

__version__ = "0.1.0"
