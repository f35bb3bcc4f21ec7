"""
Sentinel Memory — agent memories recalled into a run and extracted from it when the agent has the memory capability.

Usage:
    from sentinel.memory import AgentMemory, InMemoryAgentMemoryStore, MemoryScope, MemoryType
"""

from sentinel.memory.extraction import ExtractedMemories, GeneratedMemoryUnit, MemoryExtractionMode, MemoryExtractor
from sentinel.memory.store import AgentMemoryStore, InMemoryAgentMemoryStore, format_memories, recall_memories
from sentinel.memory.types import AgentMemory, MemoryScope, MemoryType

__all__ = [
  "AgentMemory",
  "AgentMemoryStore",
  "InMemoryAgentMemoryStore",
  "MemoryExtractor",
  "MemoryExtractionMode",
  "GeneratedMemoryUnit",
  "ExtractedMemories",
  "MemoryScope",
  "MemoryType",
  "format_memories",
  "recall_memories",
]
