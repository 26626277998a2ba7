"""
Update Manager - control plane for product versions, deployments and licenses
"""
