"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Direction, OrderUpdate, ReorderResult)
- order_keys.py: order keys for newly created tasks
- reorder.py: pairwise up/down moves by midpoint interpolation
- propagation.py: copy one day's order onto other days
- task_store.py: SQLite-backed storage with a change stream
- task_api.py: high-level operations used by the connectors
"""
