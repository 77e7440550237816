"""Temporary elevated permissions for the scanner service account."""

from .grantor import CROSS_NAMESPACE_ROLE, PREEXISTING_ANNOTATION, PermissionGrant, PermissionGrantError, PermissionGrantor

__all__ = ["CROSS_NAMESPACE_ROLE", "PREEXISTING_ANNOTATION", "PermissionGrant", "PermissionGrantError", "PermissionGrantor"]
