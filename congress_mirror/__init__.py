"""Incremental mirror of the Congress.gov API into a relational store."""

__version__ = "0.4.0"
