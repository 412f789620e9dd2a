"""
Mnemo - Memory compression and retrieval scoring for conversational agents

Decides which remembered observations to merge together and which to surface
back to an agent for the current conversation context.

Usage:
    pip install mnemo
    mnemo compress pending.json
    mnemo retrieve graph.json --context "memory system"
    mnemo serve

How it works:
    1. Recent, similar observations about the same entity are clustered
    2. Each cluster is replaced by one summarizing observation with provenance
    3. Retrieval ranks entities, relations and observations by relevance,
       recency and confidence for the given context
"""

__version__ = "0.1.0"

from mnemo.backend.modules.memory import (
    MemoryEngine,
    MemoryConfig,
)

__all__ = [
    "MemoryEngine",
    "MemoryConfig",
    "__version__",
]
