"""Offline-first attendance store and sync core.

This package is organized by feature modules (attendance, changes, reference,
sync) with a thin Flask controller layer over service/repository layers.
"""
