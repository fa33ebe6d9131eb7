"""Contract negotiation module -- stage engine, models, repository, and workflow.

Provides the stage engine (ContractStage, legal transitions, derived status),
SQLAlchemy models (Pitch, Contract, ContractWorkflowStep), Pydantic schemas,
ContractRepository for version-guarded persistence, ContractWorkflow for the
negotiation operations, and pipeline analytics.
"""
