"""
ShapeFlow Package
=================

Shape scheduling for the matching game: which shape plays next, and whether
a plugin shape is fit to play at all.

- pool_core: sampler, verifier, pools, scheduler and progression modes
- evaluation: command-line verification of plugin shapes

Tunable parameters live in pool_config.yaml.
"""
