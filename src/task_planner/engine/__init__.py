"""Dependency graph, status and execution-planning engine.

The public entry point is :class:`task_planner.engine.manager.DependencyManager`;
the remaining modules are its components (store, dependency graph, knowledge
tracker, resource ledger, status engine, planner and diagnostics).
"""
