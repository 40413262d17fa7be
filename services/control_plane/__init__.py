"""
Admin Control Plane Service
===========================

Feature flags, marketing config, system settings, integrations and admin
jobs for the founder console.
"""
