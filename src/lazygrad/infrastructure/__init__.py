"""
Concrete runtime: arrays, primitives, backends, scheduling, differentiation.
"""
