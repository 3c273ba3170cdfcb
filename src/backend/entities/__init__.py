"""
Entities package.

Each subdirectory represents one stage of query processing:
- query_validator/: Validation pipeline deciding whether candidate SQL may run
- sql_generator/: Natural-language-to-SQL generators, retry decorator and factory
- orchestrator/: Query orchestrator driving generation, validation and execution
- shared/: I/O protocols, SQL Server client, schema repository, conversation state
"""
