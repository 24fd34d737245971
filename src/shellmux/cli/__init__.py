"""Command line interface for shellmux"""
