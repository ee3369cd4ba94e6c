"""Manifests, egress policy, nitro-cli wrappers, an attestation API and supervisor helpers for Nitro Enclaves."""

__version__ = "0.1.0"