"""
contact_mirror.sync - Contact model, duplicate clustering, merge and the
sync orchestrator.

Import from the submodules directly:
    from contact_mirror.sync.engine import SyncOrchestrator
    from contact_mirror.sync.cluster import EmailGraphClusterer
"""
