"""Unification layer: mapper registry, mapper interface, dispatcher and id lookup.

Import from the submodules directly (registry, mapper, dispatcher, lookup,
schemas); this package does not re-export to keep import order acyclic.
"""
