"""
nodeflow: schema-driven workflow graphs with validation, undo/redo and expressions.

The engine behind a visual automation builder: it decides whether a graph of
trigger, action and logic nodes is well-formed, which fields each node
exposes given its sibling values, and how one node's output is referenced
from another node's input.
"""

__version__ = "0.4.0"
