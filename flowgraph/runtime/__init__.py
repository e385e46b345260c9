"""
Runtime Module

Command line entry point (`flowgraph.runtime.main`) for validating and
compiling workflows.
"""
