"""
Catalog access: the external book search API and the local book rows it feeds.
"""
