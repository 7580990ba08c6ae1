"""
Plugins Package
===============

Shape plugins registered in shapeflow/pool_config.yaml.

- baseline_shapes: the stock direct-factory shapes
- team_template: starting point for a context-factory shape
"""
