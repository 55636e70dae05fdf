"""
In-memory permission editing engine.

Pure Python: builds the service tree, resolves effective permissions, applies
toggles with their cascade rules, runs scoped bulk actions and computes the
minimal commit against the last saved snapshot. Persistence is reached only
through the PersistenceGateway protocol.
"""
