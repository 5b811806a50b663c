"""
Member identity: OAuth2 provider profile mapping and local user provisioning.
"""
