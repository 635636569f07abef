"""Multi-engine heuristic vulnerability scanner for Solidity source."""

__version__ = "0.3.0"
