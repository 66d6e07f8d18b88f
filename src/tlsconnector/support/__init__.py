"""
Small helpers shared by the connectors: event sources, value object mixins and the
certificate/echo server fixtures used by the tests.
"""
