# Services package init
"""
AudioScholar Backend — Services Layer
======================================

Service Inventory:
    - KeyRotationManager (abstract): get_key / report_error / report_success
    - DefaultKeyRotationManager: in-memory pools with cooldown
    - RobustTaskExecutor: retry-forever wrapper for background work
    - ModelRotationService: model-hierarchy rotation with cycle backoff
    - ConvertApiService: bounded-retry PPTX → PDF conversion client
    - GeminiService: text generation through model + key rotation

Services are plain objects constructed once at startup (see each
`from_settings`) and passed by reference to their consumers.
"""
