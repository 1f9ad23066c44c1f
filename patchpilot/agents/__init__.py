"""Pipeline stages, orchestrator and PR creation"""
