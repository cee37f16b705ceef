"""
dbaas-operator: reconciles declared database clusters, databases and users
against a managed-database provisioning API.
"""

__version__ = "1.0.0"
