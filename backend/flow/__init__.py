"""
Flow - workflow tree model (flow.model), store (flow.store) and session (flow.session).
Import from the submodules; layout and shared.graph depend on flow.model alone.
"""
