# ABOUTME: Utilities package initialization for the ArgoCD image update action
# ABOUTME: Contains the API client, patch builders, label parsing and logging

"""
ArgoCD image update utilities

Shared utilities:
    - client.py: ArgoCD API client with session login
    - patches.py: Helm/Kustomize JSON-Patch builders
    - labels.py: Label string parsing and selector rendering
    - logging.py: Structured logging with correlation IDs
"""
