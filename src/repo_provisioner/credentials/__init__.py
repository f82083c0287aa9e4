"""SSH deploy key bookkeeping."""

from .registry import CredentialBookkeeper, JsonSSHKeyRegistry, touch_credential_usage

__all__ = ["CredentialBookkeeper", "JsonSSHKeyRegistry", "touch_credential_usage"]
