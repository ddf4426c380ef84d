"""Clinic administration service: role-gated user management."""
