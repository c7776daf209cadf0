"""Reusable patterns shared by the Bookineo services.

Each module is a self-contained pattern: a pure-function rules engine,
the rental workflow state machine, a generic async repository layer, and
the frozen domain configuration.
"""
