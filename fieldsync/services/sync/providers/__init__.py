"""
Data Source Providers
Transport layer for external APIs (Jobber GraphQL)
"""
from fieldsync.services.sync.providers.jobber import JobberGraphQLClient, TEST_CONNECTION_QUERY

__all__ = [
    "JobberGraphQLClient",
    "TEST_CONNECTION_QUERY",
]
