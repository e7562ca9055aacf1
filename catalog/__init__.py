"""Catalog of smart-contract vulnerability exemplars."""
