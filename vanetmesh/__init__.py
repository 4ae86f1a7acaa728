"""Wire format, routing counters, test hub and topology graph data for a vehicular mesh network."""

__version__ = "0.1.0"