"""addsctl — Active Directory forest and domain controller provisioning."""

__version__ = "0.1.0"
