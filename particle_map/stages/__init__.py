"""Pipeline stages, in execution order.

extract -> bounds -> transform -> grid -> classify -> dispatch
"""
