"""Definition dependency graph package."""

from .dependency_graph import DependencyGraphBuilder, GraphEdge, GraphResult, SkippedMember, extract_type_names

__all__ = ["DependencyGraphBuilder", "GraphEdge", "GraphResult", "SkippedMember", "extract_type_names"]
