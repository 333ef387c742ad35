"""
rin.core - Orchestration core.

Tool layer, orchestration loop, conversation memory and cooperative
cancellation.
"""
